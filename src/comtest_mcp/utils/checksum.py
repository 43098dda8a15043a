"""Factory Auto Test frame checksum.

The checksum byte is the two's complement of the truncated byte sum, so
adding it to the covered bytes yields zero modulo 256.
"""

from __future__ import annotations


def checksum(data: bytes) -> int:
    """Compute the checksum byte over ``data``.

    Args:
        data: The covered bytes (length byte through last payload byte).

    Returns:
        ``(0x100 - (sum(data) & 0xFF)) & 0xFF``. Empty input gives 0x00.
    """
    return (0x100 - (sum(data) & 0xFF)) & 0xFF
