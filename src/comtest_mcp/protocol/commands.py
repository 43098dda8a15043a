"""Command identifiers, source/status tables, and command builders.

Requests and responses use separate single-byte IDs. ``Command.ACK`` is
special: the device may send it in place of any typed response.
"""

from __future__ import annotations

from enum import IntEnum

from .framing import ACK_ID, build_frame, frame_to_hex


class Command(IntEnum):
    """Command identifiers, requests and responses."""

    ACK = ACK_ID
    GET_MAC_ADDR = 0x0C
    RET_MAC_ADDR = 0x0D
    GET_CHECKSUM = 0x12
    RET_CHECKSUM = 0x13
    GET_SOURCE = 0x14
    RET_SOURCE = 0x15
    SET_SOURCE = 0x16
    GET_IP_INFO = 0x31
    RET_IP_INFO = 0x32
    GET_WIFI_STATUS = 0x33
    RET_WIFI_STATUS = 0x34
    CHECK_BLUETOOTH = 0x38
    RET_BLUETOOTH_STATUS = 0x39


class Source(IntEnum):
    """Input sources reported by GET_SOURCE and selected by SET_SOURCE."""

    ATV = 0
    DTV = 1
    DVBS = 2
    DVBC = 3
    DVBT = 4
    DVBT2 = 5
    VGA = 6
    VGA2 = 7
    HDMI1 = 8
    HDMI2 = 9
    HDMI3 = 10
    HDMI4 = 11
    HDMI5 = 12
    SCART1 = 13
    SCART2 = 14
    AV1 = 15
    AV2 = 16
    AV3 = 17
    AV4 = 18
    YPBPR1 = 19
    YPBPR2 = 20
    YPBPR3 = 21
    YPBPR4 = 22
    USB1 = 23
    USB2 = 24
    USB3 = 25
    USB4 = 26


class Status(IntEnum):
    """Wi-Fi / Bluetooth self-test status codes."""

    OK = 0
    CHECKING = 1
    FAILED = 2


STATUS_NAMES: dict[int, str] = {
    Status.OK: "OK",
    Status.CHECKING: "Checking",
    Status.FAILED: "Failed",
}

# Non-zero ACK error codes with a known meaning
ACK_ERROR_NAMES: dict[int, str] = {
    1: "Unknown Command",
    2: "Parameter Error",
}

# Sources that may be selected by name from the CLI / MCP tools
SETTABLE_SOURCES: dict[str, Source] = {
    source.name.lower(): source
    for source in (
        Source.ATV,
        Source.DTV,
        Source.DVBS,
        Source.DVBC,
        Source.DVBT,
        Source.DVBT2,
        Source.VGA,
        Source.HDMI1,
        Source.HDMI2,
        Source.HDMI3,
        Source.HDMI4,
        Source.HDMI5,
        Source.AV1,
        Source.AV2,
        Source.USB1,
        Source.USB2,
    )
}


def source_name(source_id: int) -> str:
    """Canonical name for a source ID, or ``Unknown(0xNN)``."""
    try:
        return Source(source_id).name
    except ValueError:
        return f"Unknown(0x{source_id:02X})"


def status_name(status_code: int) -> str:
    """Label for a status code, or ``Unknown(N)``."""
    return STATUS_NAMES.get(status_code, f"Unknown({status_code})")


def ack_error_name(error_code: int) -> str | None:
    """Label for a device error code, or None when unlabeled."""
    return ACK_ERROR_NAMES.get(error_code)


def resolve_source(name: str) -> int:
    """Resolve a settable source name (case-insensitive) to its ID.

    Raises:
        ValueError: If the name is not a settable source.
    """
    source = SETTABLE_SOURCES.get(name.strip().lower())
    if source is None:
        raise ValueError(
            f"Invalid source: {name}. Valid sources: {', '.join(SETTABLE_SOURCES)}"
        )
    return source.value


def build_command(command: int, payload: bytes = b"") -> bytes:
    """Build a single protocol frame for a command."""
    return build_frame(int(command), payload)


def build_command_hex(command: int, payload: bytes = b"") -> str:
    """Build a command frame and render it as a hex string."""
    return frame_to_hex(build_command(command, payload))


def build_get_checksum() -> bytes:
    """Build a GET_CHECKSUM (0x12) query."""
    return build_command(Command.GET_CHECKSUM)


def build_get_ip() -> bytes:
    """Build a GET_IP_INFO (0x31) query."""
    return build_command(Command.GET_IP_INFO)


def build_get_mac() -> bytes:
    """Build a GET_MAC_ADDR (0x0C) query."""
    return build_command(Command.GET_MAC_ADDR)


def build_get_source() -> bytes:
    """Build a GET_SOURCE (0x14) query."""
    return build_command(Command.GET_SOURCE)


def build_get_wifi_status() -> bytes:
    """Build a GET_WIFI_STATUS (0x33) query."""
    return build_command(Command.GET_WIFI_STATUS)


def build_get_bluetooth_status() -> bytes:
    """Build a CHECK_BLUETOOTH (0x38) query."""
    return build_command(Command.CHECK_BLUETOOTH)


def build_set_source(source_id: int) -> bytes:
    """Build a SET_SOURCE command.

    Names are not resolved here; use :func:`resolve_source` first.

    Args:
        source_id: Source ID 0-255.
    """
    if not 0 <= source_id <= 0xFF:
        raise ValueError(f"Source ID must be 0-255, got {source_id}")
    return build_command(Command.SET_SOURCE, bytes([source_id]))


def build_set_source_hex(source_id: int) -> str:
    """Build a SET_SOURCE command as a hex string."""
    return frame_to_hex(build_set_source(source_id))
