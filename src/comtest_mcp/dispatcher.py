"""Command dispatcher: one request/response cycle over a transport.

Each logical operation maps to a frame builder, a decoder and the
response ID it expects. The dispatcher builds the frame, writes it,
waits for exactly one frame and decodes it. It never retries; a caller
that wants another attempt issues a fresh dispatch.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from .protocol.commands import (
    Command,
    build_get_bluetooth_status,
    build_get_checksum,
    build_get_ip,
    build_get_mac,
    build_get_source,
    build_get_wifi_status,
    build_set_source,
    resolve_source,
)
from .protocol.framing import frame_to_hex
from .protocol.parser import (
    ErrorKind,
    Response,
    parse_ack,
    parse_bluetooth_status,
    parse_checksum,
    parse_ip,
    parse_mac,
    parse_response,
    parse_source,
    parse_wifi_status,
)
from .transport.base import DEFAULT_TIMEOUT_MS, FrameTimeout, Transport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Operation:
    """One entry of the operation table."""

    name: str
    label: str
    builder: Callable[..., bytes]
    decoder: Callable[..., Response]
    expected_response_id: int | None
    result_key: str | None = None
    takes_argument: bool = False

    def build(self, argument: str | None = None) -> bytes:
        """Build the request frame.

        Raises:
            ValueError: If the argument is missing or rejected by the builder.
        """
        if not self.takes_argument:
            return self.builder()
        if argument is None:
            raise ValueError(f"Command {self.name} requires a value")
        return self.builder(argument)

    def decode(self, data: bytes) -> Response:
        """Decode a response frame against the expected response ID."""
        if self.expected_response_id is None:
            return self.decoder(data)
        return self.decoder(data, self.expected_response_id)

    @property
    def verb(self) -> str:
        return self.name.split("-", 1)[0]

    @property
    def item(self) -> str:
        return self.name.split("-", 1)[1]


def _build_set_source(name: str) -> bytes:
    return build_set_source(resolve_source(name))


def _decode_set_source(data: bytes) -> Response:
    return parse_ack(data, Command.SET_SOURCE)


OPERATIONS: dict[str, Operation] = {
    op.name: op
    for op in (
        Operation(
            "get-checksum", "Checksum", build_get_checksum, parse_checksum,
            Command.RET_CHECKSUM, "checksum",
        ),
        Operation(
            "get-ip", "IP Address", build_get_ip, parse_ip,
            Command.RET_IP_INFO, "ip",
        ),
        Operation(
            "get-mac", "MAC Address", build_get_mac, parse_mac,
            Command.RET_MAC_ADDR, "mac",
        ),
        Operation(
            "get-source", "Source", build_get_source, parse_source,
            Command.RET_SOURCE, "source",
        ),
        Operation(
            "get-wifi", "WiFi Status", build_get_wifi_status, parse_wifi_status,
            Command.RET_WIFI_STATUS, "status",
        ),
        Operation(
            "get-bluetooth", "Bluetooth Status", build_get_bluetooth_status,
            parse_bluetooth_status, Command.RET_BLUETOOTH_STATUS, "status",
        ),
        Operation(
            "set-source", "Source", _build_set_source, _decode_set_source,
            None, takes_argument=True,
        ),
        Operation(
            "test-wifi", "WiFi Test", build_get_wifi_status, parse_wifi_status,
            Command.RET_WIFI_STATUS, "status",
        ),
        Operation(
            "test-bluetooth", "Bluetooth Test", build_get_bluetooth_status,
            parse_bluetooth_status, Command.RET_BLUETOOTH_STATUS, "status",
        ),
    )
}


def get_operation(name: str) -> Operation | None:
    """Look up an operation by name, e.g. ``get-mac``."""
    return OPERATIONS.get(name.strip().lower())


def available_operations() -> dict[str, list[str]]:
    """Operation items grouped by verb (get / set / test)."""
    grouped: dict[str, list[str]] = {}
    for op in OPERATIONS.values():
        grouped.setdefault(op.verb, []).append(op.item)
    return grouped


def format_result(operation: Operation, result: Response) -> str:
    """One-line rendering of a dispatch result."""
    if not result.success:
        return f"Error: {result.error}"
    if operation.takes_argument or operation.result_key is None:
        return "OK"
    if result.acknowledged:
        return f"{operation.label}: acknowledged"
    return f"{operation.label}: {getattr(result, operation.result_key)}"


class CommandDispatcher:
    """Runs operations against one transport, one request at a time.

    Usage::

        dispatcher = CommandDispatcher(SerialConnection("/dev/ttyUSB0"))
        result = dispatcher.dispatch("set-source", "hdmi1")
    """

    def __init__(
        self, transport: Transport, timeout_ms: int = DEFAULT_TIMEOUT_MS
    ) -> None:
        self._transport = transport
        self._timeout_ms = timeout_ms
        self._lock = threading.Lock()

    @property
    def transport(self) -> Transport:
        return self._transport

    def dispatch(
        self,
        name: str,
        argument: str | None = None,
        timeout_ms: int | None = None,
    ) -> Response:
        """Build, send and decode one logical operation.

        Args:
            name: Operation name from :data:`OPERATIONS`.
            argument: Operation argument (required by ``set-source``).
            timeout_ms: Response deadline; defaults to the dispatcher's.

        Returns:
            The decoder's result, or a failure describing why no frame
            could be decoded.
        """
        operation = get_operation(name)
        if operation is None:
            return Response.failure(f"Unknown command: {name}", ErrorKind.BUILD)

        try:
            frame = operation.build(argument)
        except ValueError as e:
            return Response.failure(str(e), ErrorKind.BUILD)

        return self._exchange(frame, operation.decode, timeout_ms)

    def dispatch_raw(self, frame: bytes, timeout_ms: int | None = None) -> Response:
        """Send an arbitrary frame and decode whatever comes back."""
        return self._exchange(bytes(frame), parse_response, timeout_ms)

    def _exchange(
        self,
        frame: bytes,
        decoder: Callable[[bytes], Response],
        timeout_ms: int | None,
    ) -> Response:
        timeout_ms = self._timeout_ms if timeout_ms is None else timeout_ms

        with self._lock:
            try:
                self._transport.write(frame)
            except OSError as e:
                logger.warning("Write of %s failed: %s", frame_to_hex(frame), e)
                return Response.failure(str(e), ErrorKind.TRANSPORT)

            try:
                response = self._transport.read_frame(timeout_ms)
            except FrameTimeout:
                logger.warning(
                    "No response to %s within %d ms", frame_to_hex(frame), timeout_ms
                )
                return Response.failure(
                    f"Response timeout ({timeout_ms} ms)", ErrorKind.TIMEOUT
                )
            except OSError as e:
                logger.warning("Read failed: %s", e)
                return Response.failure(str(e), ErrorKind.TRANSPORT)

        return decoder(response)
