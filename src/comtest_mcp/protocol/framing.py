"""Frame builder and validator for the Factory Auto Test serial protocol.

Frame layout::

    +------+-------+--------+----------+---------+------------------+----------+
    | Sync | Start | Length | Protocol | Command |     Payload      | Checksum |
    | 0xFF | 0x33  | 1 byte |   0x03   | 1 byte  |  variable length |  1 byte  |
    +------+-------+--------+----------+---------+------------------+----------+

- Length: total number of bytes in the frame, header and checksum included
- Protocol: 0x03 identifies Factory Auto Test
- Checksum: two's complement of the byte sum from Length through Payload
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..utils.checksum import checksum

SYNC_BYTE = 0xFF
START_BYTE = 0x33
PROTOCOL_TYPE = 0x03
ACK_ID = 0x01

MIN_FRAME_LENGTH = 6  # sync + start + length + protocol + command + checksum
MAX_FRAME_LENGTH = 0xFF
MAX_PAYLOAD = MAX_FRAME_LENGTH - MIN_FRAME_LENGTH
MIN_ACK_LENGTH = MIN_FRAME_LENGTH + 2  # error code + acknowledged command id

_WHITESPACE = re.compile(r"\s+")
_HEX_DIGITS = re.compile(r"[0-9A-Fa-f]*")


@dataclass(frozen=True)
class ParsedResponse:
    """Result of validating one inbound frame."""

    valid: bool
    error: str | None = None
    packet_length: int | None = None
    protocol_type: int | None = None
    response_cmd_id: int | None = None
    is_ack: bool = False
    payload: bytes = b""
    ack_cmd_id: int | None = None
    ack_error: int | None = None

    def __repr__(self) -> str:
        if not self.valid:
            return f"ParsedResponse(valid=False, error={self.error!r})"
        return (
            f"ParsedResponse(cmd=0x{self.response_cmd_id:02X}, "
            f"ack={self.is_ack}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def _invalid(error: str) -> ParsedResponse:
    return ParsedResponse(valid=False, error=error)


def build_frame(command: int, payload: bytes = b"") -> bytes:
    """Build a complete protocol frame.

    Args:
        command: Single-byte command ID.
        payload: Command-specific payload bytes.

    Returns:
        The frame as ``bytes``, checksum appended.

    Raises:
        ValueError: If the command ID does not fit a byte or the payload
            would push the frame over 255 bytes.
    """
    if not 0 <= command <= 0xFF:
        raise ValueError(f"Command ID must be 0-255, got {command}")
    payload = bytes(payload)
    if len(payload) > MAX_PAYLOAD:
        raise ValueError(
            f"Payload must be at most {MAX_PAYLOAD} bytes, got {len(payload)}"
        )

    length = MIN_FRAME_LENGTH + len(payload)
    frame = bytes([SYNC_BYTE, START_BYTE, length, PROTOCOL_TYPE, command]) + payload
    return frame + bytes([checksum(frame[2:])])


def validate_frame(
    data: bytes, expected_response_id: int | None = None
) -> ParsedResponse:
    """Validate exactly one delimited frame and split out its fields.

    Checks run in wire order and the first failure is reported. An ACK
    frame (command 0x01) is accepted whatever ``expected_response_id``
    is, since the device may refuse any request with a generic ACK.

    Args:
        data: One complete frame as delivered by the transport.
        expected_response_id: Response command ID the caller is waiting
            for, or ``None`` to accept any.

    Returns:
        A ``ParsedResponse``; ``valid`` is False and ``error`` describes
        the problem when the frame is malformed.
    """
    data = bytes(data)
    size = len(data)

    if size < MIN_FRAME_LENGTH:
        return _invalid(f"Response too short: {size} bytes")
    if data[0] != SYNC_BYTE:
        return _invalid(f"Invalid sync byte: 0x{data[0]:02X}")
    if data[1] != START_BYTE:
        return _invalid(f"Invalid start byte: 0x{data[1]:02X}")

    packet_length = data[2]
    if packet_length != size:
        return _invalid(f"Length mismatch: expected {packet_length}, got {size}")

    received = data[-1]
    calculated = checksum(data[2:-1])
    if received != calculated:
        return _invalid(
            f"Checksum mismatch: expected 0x{calculated:02X}, got 0x{received:02X}"
        )

    if data[3] != PROTOCOL_TYPE:
        return _invalid(f"Invalid protocol type: 0x{data[3]:02X}")

    response_cmd_id = data[4]
    is_ack = response_cmd_id == ACK_ID

    if (
        expected_response_id is not None
        and not is_ack
        and response_cmd_id != expected_response_id
    ):
        return _invalid(
            f"Unexpected response ID: expected 0x{expected_response_id:02X}, "
            f"got 0x{response_cmd_id:02X}"
        )

    payload = data[5:-1]
    # ACK payload is [error code, acknowledged command id]; fields absent
    # from a short ACK stay None
    return ParsedResponse(
        valid=True,
        packet_length=packet_length,
        protocol_type=data[3],
        response_cmd_id=response_cmd_id,
        is_ack=is_ack,
        payload=payload,
        ack_cmd_id=payload[1] if is_ack and len(payload) > 1 else None,
        ack_error=payload[0] if is_ack and payload else None,
    )


def frame_to_hex(frame: bytes) -> str:
    """Render bytes as uppercase space-separated hex, e.g. ``FF 33 06``."""
    return " ".join(f"{b:02X}" for b in frame)


def hex_to_frame(text: str) -> bytes:
    """Parse a hex string into bytes.

    Whitespace anywhere in the string is ignored and digits may be any
    case, so ``"FF 33 06"``, ``"ff3306"`` and ``"F F33 06"`` are equal.

    Raises:
        ValueError: On an odd number of digits or a non-hex character.
    """
    digits = _WHITESPACE.sub("", text)
    if not _HEX_DIGITS.fullmatch(digits):
        raise ValueError(f"Invalid hex string: {text!r}")
    if len(digits) % 2:
        raise ValueError(
            f"Hex string must have an even number of digits, got {len(digits)}"
        )
    return bytes.fromhex(digits)
