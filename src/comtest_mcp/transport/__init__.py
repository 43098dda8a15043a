"""Transport layer: byte-stream framing and the serial port connection."""

from .base import FrameAssembler, FrameTimeout, Transport
from .serial_connection import PortInfo, SerialConnection, list_serial_ports
