"""Response decoders for device messages.

Every decoder validates the frame first and returns a result object
rather than raising, so callers can print or serialize failures the same
way they do successes.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Callable

from .commands import (
    Command,
    ack_error_name,
    source_name,
    status_name,
)
from .framing import MIN_ACK_LENGTH, ParsedResponse, frame_to_hex, validate_frame


class ErrorKind(str, Enum):
    """Where a failure came from."""

    MALFORMED = "malformed"
    DEVICE = "device"
    DECODE = "decode"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    BUILD = "build"


@dataclass
class Response:
    """Common result fields shared by all decoders."""

    success: bool = False
    error: str | None = None
    error_kind: ErrorKind | None = None
    acknowledged: bool = False
    ack_cmd_id: int | None = None
    ack_error: int | None = None

    @classmethod
    def failure(cls, error: str, kind: ErrorKind, **extra: Any) -> "Response":
        return cls(success=False, error=error, error_kind=kind, **extra)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view with unset fields dropped."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if f.name == "acknowledged" and not value:
                continue
            if isinstance(value, Enum):
                value = value.value
            result[f.name] = value
        return result


@dataclass
class ChecksumResponse(Response):
    """Parsed RET_CHECKSUM (0x13) response."""

    checksum: str | None = None


@dataclass
class IpResponse(Response):
    """Parsed RET_IP_INFO (0x32) response."""

    ip: str | None = None


@dataclass
class MacResponse(Response):
    """Parsed RET_MAC_ADDR (0x0D) response."""

    mac: str | None = None


@dataclass
class SourceResponse(Response):
    """Parsed RET_SOURCE (0x15) response."""

    source: str | None = None
    source_id: int | None = None


@dataclass
class StatusResponse(Response):
    """Parsed RET_WIFI_STATUS (0x34) / RET_BLUETOOTH_STATUS (0x39) response."""

    status: str | None = None
    status_code: int | None = None


@dataclass
class AckResponse(Response):
    """Parsed ACK (0x01) response."""

    error_name: str | None = None


@dataclass
class RawResponse(Response):
    """A valid frame with a response ID no decoder knows."""

    response_cmd_id: int | None = None
    raw: str | None = None


def extract_ascii(payload: bytes) -> str:
    """Decode a payload as one character per byte, no terminator."""
    return payload.decode("latin-1")


def format_mac(mac_bytes: bytes) -> str:
    """Format MAC bytes as ``AA:BB:CC:DD:EE:FF``."""
    return ":".join(f"{b:02X}" for b in mac_bytes)


def device_error_message(error_code: int) -> str:
    """Human-readable text for a non-zero ACK error code."""
    label = ack_error_name(error_code)
    if label:
        return f"Device returned error code {error_code} ({label})"
    return f"Device returned error code {error_code}"


def _validate(
    cls: type[Response], data: bytes, expected_id: int | None
) -> tuple[ParsedResponse, Response | None]:
    """Run frame validation and the ACK short-circuit shared by all decoders.

    Returns the parsed frame and, when decoding must stop here, the
    result to hand back.
    """
    parsed = validate_frame(data, expected_id)
    if not parsed.valid:
        return parsed, cls.failure(parsed.error, ErrorKind.MALFORMED)

    if parsed.is_ack:
        # A 7-byte ACK still carries its error code; the command id may not
        if parsed.ack_error:
            return parsed, cls.failure(
                device_error_message(parsed.ack_error),
                ErrorKind.DEVICE,
                ack_cmd_id=parsed.ack_cmd_id,
                ack_error=parsed.ack_error,
            )
        if parsed.ack_cmd_id is None:
            return parsed, cls.failure(
                f"ACK response too short: need {MIN_ACK_LENGTH} bytes, "
                f"got {parsed.packet_length}",
                ErrorKind.MALFORMED,
            )
        if cls is not AckResponse:
            # Device acknowledged instead of answering; nothing to decode
            return parsed, cls(
                success=True,
                acknowledged=True,
                ack_cmd_id=parsed.ack_cmd_id,
                ack_error=parsed.ack_error,
            )
    return parsed, None


def parse_checksum(
    data: bytes, expected_id: int | None = Command.RET_CHECKSUM
) -> ChecksumResponse:
    """Parse a checksum response; the payload is ASCII text."""
    parsed, early = _validate(ChecksumResponse, data, expected_id)
    if early is not None:
        return early
    return ChecksumResponse(success=True, checksum=extract_ascii(parsed.payload))


def parse_ip(data: bytes, expected_id: int | None = Command.RET_IP_INFO) -> IpResponse:
    """Parse an IP info response; the payload is ASCII text."""
    parsed, early = _validate(IpResponse, data, expected_id)
    if early is not None:
        return early
    return IpResponse(success=True, ip=extract_ascii(parsed.payload))


def parse_mac(
    data: bytes, expected_id: int | None = Command.RET_MAC_ADDR
) -> MacResponse:
    """Parse a MAC address response.

    The payload must be exactly six bytes.
    """
    parsed, early = _validate(MacResponse, data, expected_id)
    if early is not None:
        return early
    if len(parsed.payload) != 6:
        return MacResponse.failure(
            f"Invalid MAC length: {len(parsed.payload)} bytes", ErrorKind.DECODE
        )
    return MacResponse(success=True, mac=format_mac(parsed.payload))


def parse_source(
    data: bytes, expected_id: int | None = Command.RET_SOURCE
) -> SourceResponse:
    """Parse a source response.

    IDs outside the known table decode to ``Unknown(0xNN)`` instead of
    failing, since firmware may report sources the table lacks.
    """
    parsed, early = _validate(SourceResponse, data, expected_id)
    if early is not None:
        return early
    if not parsed.payload:
        return SourceResponse.failure("Source response has no payload", ErrorKind.DECODE)
    source_id = parsed.payload[0]
    return SourceResponse(success=True, source=source_name(source_id), source_id=source_id)


def _parse_status(data: bytes, expected_id: int | None, what: str) -> StatusResponse:
    parsed, early = _validate(StatusResponse, data, expected_id)
    if early is not None:
        return early
    if not parsed.payload:
        return StatusResponse.failure(
            f"{what} status response has no payload", ErrorKind.DECODE
        )
    status_code = parsed.payload[0]
    return StatusResponse(
        success=True, status=status_name(status_code), status_code=status_code
    )


def parse_wifi_status(
    data: bytes, expected_id: int | None = Command.RET_WIFI_STATUS
) -> StatusResponse:
    """Parse a Wi-Fi status response."""
    return _parse_status(data, expected_id, "WiFi")


def parse_bluetooth_status(
    data: bytes, expected_id: int | None = Command.RET_BLUETOOTH_STATUS
) -> StatusResponse:
    """Parse a Bluetooth status response."""
    return _parse_status(data, expected_id, "Bluetooth")


def parse_ack(data: bytes, expected_cmd_id: int | None = None) -> AckResponse:
    """Parse an ACK response to a set command.

    Args:
        data: One complete frame.
        expected_cmd_id: Command the ACK should acknowledge, or None to
            accept any.
    """
    parsed, early = _validate(AckResponse, data, None)
    if early is not None:
        early.error_name = ack_error_name(parsed.ack_error or 0)
        return early
    if not parsed.is_ack:
        return AckResponse.failure(
            f"Expected ACK response, got 0x{parsed.response_cmd_id:02X}",
            ErrorKind.DECODE,
        )
    if expected_cmd_id is not None and parsed.ack_cmd_id != expected_cmd_id:
        return AckResponse.failure(
            f"Unexpected ACK command: expected 0x{expected_cmd_id:02X}, "
            f"got 0x{parsed.ack_cmd_id:02X}",
            ErrorKind.DECODE,
            ack_cmd_id=parsed.ack_cmd_id,
            ack_error=parsed.ack_error,
        )
    return AckResponse(
        success=True,
        acknowledged=True,
        ack_cmd_id=parsed.ack_cmd_id,
        ack_error=parsed.ack_error,
    )


DECODERS: dict[int, Callable[[bytes], Response]] = {
    Command.RET_CHECKSUM: parse_checksum,
    Command.RET_IP_INFO: parse_ip,
    Command.RET_MAC_ADDR: parse_mac,
    Command.RET_SOURCE: parse_source,
    Command.RET_WIFI_STATUS: parse_wifi_status,
    Command.RET_BLUETOOTH_STATUS: parse_bluetooth_status,
    Command.ACK: parse_ack,
}


def parse_response(data: bytes) -> Response:
    """Auto-dispatch a frame to the decoder for its response ID.

    Frames with an unrecognised response ID are returned as a successful
    ``RawResponse`` carrying the frame in hex.
    """
    parsed = validate_frame(data)
    if not parsed.valid:
        return Response.failure(parsed.error, ErrorKind.MALFORMED)

    decoder = DECODERS.get(parsed.response_cmd_id)
    if decoder:
        return decoder(data)
    return RawResponse(
        success=True,
        response_cmd_id=parsed.response_cmd_id,
        raw=frame_to_hex(data),
    )
