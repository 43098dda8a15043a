"""Tests for the command dispatcher."""

import threading

import pytest

from comtest_mcp.dispatcher import (
    OPERATIONS,
    CommandDispatcher,
    available_operations,
    format_result,
    get_operation,
)
from comtest_mcp.protocol.commands import Command
from comtest_mcp.protocol.framing import build_frame
from comtest_mcp.protocol.parser import ErrorKind, Response
from comtest_mcp.transport.base import FrameTimeout, Transport


class FakeTransport(Transport):
    """Scripted transport: records writes and replays queued replies."""

    def __init__(self, replies=None, write_error=None):
        self.replies = list(replies or [])
        self.write_error = write_error
        self.written: list[bytes] = []
        self.timeouts: list[int] = []
        self._open = True

    @property
    def connected(self) -> bool:
        return self._open

    def connect(self) -> None:
        self._open = True

    def disconnect(self) -> None:
        self._open = False

    def write(self, data: bytes) -> int:
        if self.write_error:
            raise self.write_error
        self.written.append(data)
        return len(data)

    def read_frame(self, timeout_ms: int = 3000) -> bytes:
        self.timeouts.append(timeout_ms)
        if not self.replies:
            raise FrameTimeout(f"Response timeout ({timeout_ms} ms)")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def test_operation_table_names():
    assert set(OPERATIONS) == {
        "get-checksum", "get-ip", "get-mac", "get-source", "get-wifi",
        "get-bluetooth", "set-source", "test-wifi", "test-bluetooth",
    }


def test_available_operations_grouped():
    ops = available_operations()
    assert ops["get"] == ["checksum", "ip", "mac", "source", "wifi", "bluetooth"]
    assert ops["set"] == ["source"]
    assert ops["test"] == ["wifi", "bluetooth"]


def test_get_operation_case_insensitive():
    assert get_operation("GET-MAC") is OPERATIONS["get-mac"]
    assert get_operation("get-nothing") is None


def test_operation_build():
    """Operations build their frame without touching a transport."""
    assert OPERATIONS["get-ip"].build() == build_frame(Command.GET_IP_INFO)
    assert OPERATIONS["set-source"].build("HDMI1") == build_frame(Command.SET_SOURCE, b"\x08")
    with pytest.raises(ValueError, match="requires a value"):
        OPERATIONS["set-source"].build()
    with pytest.raises(ValueError, match="Invalid source"):
        OPERATIONS["set-source"].build("cable")


def test_dispatch_get_mac():
    mac = bytes([0xAA, 0xBB, 0xCC, 0x01, 0x02, 0x03])
    transport = FakeTransport([build_frame(Command.RET_MAC_ADDR, mac)])
    result = CommandDispatcher(transport).dispatch("get-mac")

    assert transport.written == [build_frame(Command.GET_MAC_ADDR)]
    assert result.success
    assert result.mac == "AA:BB:CC:01:02:03"


def test_dispatch_checks_expected_response_id():
    transport = FakeTransport([build_frame(Command.RET_SOURCE, b"\x08")])
    result = CommandDispatcher(transport).dispatch("get-ip")
    assert not result.success
    assert "Unexpected response ID" in result.error


def test_set_source_builds_hdmi1_frame_and_times_out():
    """set-source hdmi1 sends SET_SOURCE [8]; silence gives a timeout failure."""
    transport = FakeTransport()
    result = CommandDispatcher(transport, timeout_ms=250).dispatch("set-source", "hdmi1")

    assert transport.written == [build_frame(Command.SET_SOURCE, bytes([8]))]
    assert not result.success
    assert result.error_kind is ErrorKind.TIMEOUT
    assert "timeout" in result.error.lower()
    assert transport.timeouts == [250]


def test_set_source_ack():
    transport = FakeTransport([build_frame(Command.ACK, bytes([0, Command.SET_SOURCE]))])
    result = CommandDispatcher(transport).dispatch("set-source", "AV1")
    assert result.success
    assert transport.written == [build_frame(Command.SET_SOURCE, bytes([15]))]


def test_set_source_device_error():
    transport = FakeTransport([build_frame(Command.ACK, bytes([2, Command.SET_SOURCE]))])
    result = CommandDispatcher(transport).dispatch("set-source", "hdmi2")
    assert not result.success
    assert result.error_kind is ErrorKind.DEVICE
    assert result.ack_error == 2


def test_set_source_invalid_name_never_sent():
    transport = FakeTransport()
    result = CommandDispatcher(transport).dispatch("set-source", "hdmi9")
    assert not result.success
    assert result.error_kind is ErrorKind.BUILD
    assert "Invalid source" in result.error
    assert transport.written == []


def test_set_source_missing_argument():
    transport = FakeTransport()
    result = CommandDispatcher(transport).dispatch("set-source")
    assert result.error_kind is ErrorKind.BUILD
    assert transport.written == []


def test_unknown_operation():
    result = CommandDispatcher(FakeTransport()).dispatch("get-volume")
    assert not result.success
    assert result.error == "Unknown command: get-volume"


def test_write_error_passed_through():
    transport = FakeTransport(write_error=ConnectionError("Port is not open"))
    result = CommandDispatcher(transport).dispatch("get-ip")
    assert not result.success
    assert result.error_kind is ErrorKind.TRANSPORT
    assert result.error == "Port is not open"


def test_read_error_passed_through():
    transport = FakeTransport([OSError("device reports readiness to read but returned no data")])
    result = CommandDispatcher(transport).dispatch("get-checksum")
    assert result.error_kind is ErrorKind.TRANSPORT
    assert "readiness" in result.error


def test_no_retry_after_timeout():
    transport = FakeTransport()
    CommandDispatcher(transport).dispatch("get-wifi")
    assert len(transport.written) == 1


def test_timeout_override():
    transport = FakeTransport()
    CommandDispatcher(transport, timeout_ms=3000).dispatch("test-bluetooth", timeout_ms=50)
    assert transport.timeouts == [50]


def test_dispatch_raw_uses_generic_decoder():
    transport = FakeTransport([build_frame(Command.RET_WIFI_STATUS, b"\x01")])
    result = CommandDispatcher(transport).dispatch_raw(build_frame(Command.GET_WIFI_STATUS))
    assert result.success
    assert result.status == "Checking"


def test_requests_do_not_overlap():
    """A second dispatch waits until the first has its response."""
    started = threading.Event()
    release = threading.Event()
    order = []

    class SlowTransport(FakeTransport):
        def read_frame(self, timeout_ms=3000):
            order.append("read")
            if not started.is_set():
                started.set()
                release.wait(2)
            return build_frame(Command.RET_IP_INFO, b"1.1.1.1")

        def write(self, data):
            order.append("write")
            return super().write(data)

    dispatcher = CommandDispatcher(SlowTransport())
    first = threading.Thread(target=dispatcher.dispatch, args=("get-ip",))
    first.start()
    started.wait(2)
    second = threading.Thread(target=dispatcher.dispatch, args=("get-ip",))
    second.start()
    second.join(0.1)
    release.set()
    first.join(2)
    second.join(2)

    assert order == ["write", "read", "write", "read"]


def test_format_result():
    op = OPERATIONS["get-source"]
    ok = CommandDispatcher(FakeTransport([build_frame(Command.RET_SOURCE, b"\x09")])).dispatch("get-source")
    assert format_result(op, ok) == "Source: HDMI2"
    assert format_result(op, Response.failure("boom", ErrorKind.TIMEOUT)) == "Error: boom"
    assert format_result(OPERATIONS["set-source"], Response(success=True)) == "OK"
