"""Serial toolkit for devices speaking the Factory Auto Test protocol."""

__version__ = "1.0.0"
