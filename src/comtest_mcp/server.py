"""MCP server entry point for Factory Auto Test devices.

Exposes tools and resources via the Model Context Protocol using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .dispatcher import OPERATIONS, CommandDispatcher, available_operations
from .protocol.commands import SETTABLE_SOURCES, Command, Source, build_command
from .protocol.framing import frame_to_hex, hex_to_frame
from .protocol.parser import parse_response
from .transport.base import DEFAULT_TIMEOUT_MS
from .transport.serial_connection import (
    DEFAULT_BAUD_RATE,
    SerialConnection,
    list_serial_ports,
)

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "comtest",
    instructions="Serial test bench for devices speaking the Factory Auto Test protocol",
)

# Session state for the single connected client
_dispatcher: CommandDispatcher | None = None


def _get_dispatcher() -> CommandDispatcher:
    """Get the active dispatcher, raising if no port is open."""
    if _dispatcher is None or not _dispatcher.transport.connected:
        raise RuntimeError("Port not open. Use the 'connect' tool first.")
    return _dispatcher


def _run(name: str, argument: str | None = None, timeout_ms: int | None = None) -> dict[str, Any]:
    try:
        dispatcher = _get_dispatcher()
    except RuntimeError as e:
        return {"success": False, "error": str(e)}
    result = dispatcher.dispatch(name, argument, timeout_ms)
    return {"command": name, **result.to_dict()}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def list_ports() -> dict[str, Any]:
    """List serial ports available on the host."""
    return {"ports": [p.to_dict() for p in list_serial_ports()]}


@mcp.tool()
def connect(
    port: str,
    baud_rate: int = DEFAULT_BAUD_RATE,
    data_bits: int = 8,
    stop_bits: float = 1,
    parity: str = "none",
    flow_control: str = "none",
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> dict[str, Any]:
    """Open a serial port to the device.

    Any previously opened port is closed first.

    Args:
        port: Serial port path, e.g. /dev/ttyUSB0 or COM3.
        baud_rate: Baud rate (default 115200).
        data_bits: Data bits (5-8).
        stop_bits: Stop bits (1, 1.5 or 2).
        parity: none, even, odd, mark or space.
        flow_control: none, rtscts or xonxoff.
        timeout_ms: Default response timeout for commands.
    """
    global _dispatcher
    if _dispatcher is not None:
        _dispatcher.transport.disconnect()
        _dispatcher = None

    try:
        conn = SerialConnection(
            port,
            baud_rate=baud_rate,
            bytesize=data_bits,
            parity=parity,
            stopbits=stop_bits,
            rtscts=flow_control == "rtscts",
            xonxoff=flow_control == "xonxoff",
        )
        conn.connect()
    except (ConnectionError, ValueError) as e:
        return {"connected": False, "error": str(e)}

    _dispatcher = CommandDispatcher(conn, timeout_ms=timeout_ms)
    return {"connected": True, "port": port, "baud_rate": baud_rate}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial port."""
    global _dispatcher
    if _dispatcher is None:
        return {"disconnected": True}
    _dispatcher.transport.disconnect()
    _dispatcher = None
    return {"disconnected": True}


# ─── DEVICE COMMAND TOOLS ────────────────────────────────────────────

@mcp.tool()
def get_info(item: str, timeout_ms: int | None = None) -> dict[str, Any]:
    """Query a device value.

    Args:
        item: checksum, ip, mac, source, wifi or bluetooth.
        timeout_ms: Optional response timeout override.
    """
    return _run(f"get-{item.lower()}", timeout_ms=timeout_ms)


@mcp.tool()
def set_source(source: str, timeout_ms: int | None = None) -> dict[str, Any]:
    """Switch the device input source.

    Args:
        source: Source name, e.g. hdmi1, atv, usb1.
        timeout_ms: Optional response timeout override.
    """
    return _run("set-source", source, timeout_ms)


@mcp.tool()
def run_test(kind: str, timeout_ms: int | None = None) -> dict[str, Any]:
    """Run a device self-test.

    Args:
        kind: wifi or bluetooth.
        timeout_ms: Optional response timeout override.
    """
    return _run(f"test-{kind.lower()}", timeout_ms=timeout_ms)


@mcp.tool()
def send_hex(data: str, timeout_ms: int | None = None) -> dict[str, Any]:
    """Send a raw frame given as hex text and decode the reply.

    Args:
        data: Frame bytes as hex, e.g. "FF 33 06 03 12 E5".
        timeout_ms: Optional response timeout override.
    """
    try:
        frame = hex_to_frame(data)
        dispatcher = _get_dispatcher()
    except (ValueError, RuntimeError) as e:
        return {"success": False, "error": str(e)}
    result = dispatcher.dispatch_raw(frame, timeout_ms)
    return {"sent": frame_to_hex(frame), **result.to_dict()}


# ─── OFFLINE CODEC TOOLS ─────────────────────────────────────────────

@mcp.tool()
def build_frame_hex(command: int, payload_hex: str = "") -> dict[str, Any]:
    """Build a frame with the checksum filled in, without sending it.

    Args:
        command: Command ID (0-255).
        payload_hex: Optional payload bytes as hex.
    """
    try:
        frame = build_command(command, hex_to_frame(payload_hex))
    except ValueError as e:
        return {"error": str(e)}
    return {"frame": frame_to_hex(frame), "length": len(frame)}


@mcp.tool()
def decode_hex(data: str) -> dict[str, Any]:
    """Validate and decode a received frame given as hex text.

    Args:
        data: One complete frame as hex.
    """
    try:
        frame = hex_to_frame(data)
    except ValueError as e:
        return {"success": False, "error": str(e)}
    return parse_response(frame).to_dict()


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("comtest://device/status")
def resource_device_status() -> str:
    """Connection state and port settings."""
    if _dispatcher is None or not _dispatcher.transport.connected:
        return json.dumps({"connected": False})

    conn = _dispatcher.transport
    return json.dumps({
        "connected": True,
        "port": getattr(conn, "port", ""),
        "baud_rate": getattr(conn, "baud_rate", None),
    })


@mcp.resource("comtest://catalog/commands")
def resource_command_catalog() -> str:
    """Available operations and raw command IDs."""
    return json.dumps({
        "operations": available_operations(),
        "labels": {name: op.label for name, op in OPERATIONS.items()},
        "command_ids": {c.name: f"0x{c.value:02X}" for c in Command},
    })


@mcp.resource("comtest://catalog/sources")
def resource_source_catalog() -> str:
    """All source IDs and the names accepted by set_source."""
    sources = [{"id": s.value, "name": s.name} for s in Source]
    return json.dumps({"sources": sources, "settable": list(SETTABLE_SOURCES)})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
