"""comtest - command-line access to Factory Auto Test devices.

Usage::

    comtest list-ports
    comtest -p /dev/ttyUSB0 get checksum
    comtest -p COM3 set source hdmi1
    comtest -p /dev/ttyUSB0 test wifi
    comtest -p /dev/ttyUSB0 send "FF 33 06 03 12 E5"
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from . import __version__
from .dispatcher import CommandDispatcher, available_operations, format_result, get_operation
from .protocol.commands import SETTABLE_SOURCES
from .protocol.framing import hex_to_frame
from .protocol.parser import ErrorKind, Response
from .transport.base import DEFAULT_TIMEOUT_MS
from .transport.serial_connection import (
    DEFAULT_BAUD_RATE,
    SerialConnection,
    list_serial_ports,
)

logger = logging.getLogger(__name__)

OK_MARK = "✓"
FAIL_MARK = "✗"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="comtest", description="Factory Auto Test serial port testing CLI"
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-p", "--port", help="serial port path")
    p.add_argument("-b", "--baud", type=int, default=DEFAULT_BAUD_RATE, help="baud rate")
    p.add_argument(
        "-t", "--timeout", type=int, default=DEFAULT_TIMEOUT_MS,
        help="response timeout in milliseconds",
    )
    p.add_argument("-j", "--json", action="store_true", help="output in JSON format")
    p.add_argument("--debug", action="store_true", help="enable debug output")

    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("list-ports", help="list available serial ports")
    sub.add_parser("commands", help="show available commands")

    get = sub.add_parser("get", help="get device info (checksum, ip, mac, source, wifi, bluetooth)")
    get.add_argument("item")

    set_ = sub.add_parser("set", help="set device parameter (e.g. set source hdmi1)")
    set_.add_argument("type")
    set_.add_argument("value")

    test = sub.add_parser("test", help="run device test (wifi, bluetooth)")
    test.add_argument("type")

    send = sub.add_parser("send", help="send a raw frame given as hex")
    send.add_argument("hex", nargs="+")
    return p


def _print_json(data: dict[str, Any]) -> None:
    print(json.dumps(data, indent=2))


def cmd_list_ports(args: argparse.Namespace) -> int:
    ports = list_serial_ports()
    if args.json:
        print(json.dumps([p.to_dict() for p in ports], indent=2))
        return 0
    if not ports:
        print("No serial ports found.")
        return 0

    print("Available serial ports:\n")
    for port in ports:
        print(f"  {port.device}")
        if port.manufacturer:
            print(f"    Manufacturer: {port.manufacturer}")
        if port.serial_number:
            print(f"    Serial Number: {port.serial_number}")
        if port.description:
            print(f"    Description: {port.description}")
        print()
    return 0


def cmd_commands(args: argparse.Namespace) -> int:
    ops = available_operations()
    if args.json:
        _print_json({**ops, "sources": list(SETTABLE_SOURCES)})
        return 0

    print("Available commands:\n")
    print("Get commands:")
    for item in ops.get("get", []):
        print(f"  get {item}")
    print()
    print("Set commands:")
    print("  set source <name>")
    print(f"  Valid sources: {', '.join(SETTABLE_SOURCES)}")
    print()
    print("Test commands:")
    for item in ops.get("test", []):
        print(f"  test {item}")
    return 0


def _exchange(args: argparse.Namespace, run) -> Response:
    """Open the port, run one dispatch, and close the port again."""
    conn = SerialConnection(args.port, baud_rate=args.baud)
    try:
        conn.connect()
    except ConnectionError as e:
        return Response.failure(str(e), ErrorKind.TRANSPORT)
    try:
        return run(CommandDispatcher(conn, timeout_ms=args.timeout))
    finally:
        conn.disconnect()


def _report(args: argparse.Namespace, result: Response, text: str) -> int:
    if args.json:
        _print_json(result.to_dict())
    elif result.success:
        print(f"{OK_MARK} {text}")
    else:
        print(f"{FAIL_MARK} Error: {result.error}")
    return 0 if result.success else 1


def cmd_operation(args: argparse.Namespace, name: str, value: str | None = None) -> int:
    operation = get_operation(name)
    if operation is None:
        result = Response.failure(f"Unknown command: {name.replace('-', ' ')}", ErrorKind.BUILD)
        return _report(args, result, "")
    try:
        operation.build(value)
    except ValueError as e:
        return _report(args, Response.failure(str(e), ErrorKind.BUILD), "")

    result = _exchange(args, lambda d: d.dispatch(operation.name, value))
    if operation.takes_argument:
        text = f"{operation.item} set to {value}"
    else:
        text = format_result(operation, result)
    return _report(args, result, text)


def cmd_send(args: argparse.Namespace) -> int:
    try:
        frame = hex_to_frame(" ".join(args.hex))
    except ValueError as e:
        return _report(args, Response.failure(str(e), ErrorKind.BUILD), "")
    result = _exchange(args, lambda d: d.dispatch_raw(frame))
    return _report(args, result, json.dumps(result.to_dict()))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "list-ports":
        return cmd_list_ports(args)
    if args.command == "commands":
        return cmd_commands(args)

    if not args.port:
        print("Error: Serial port is required. Use -p or --port option.", file=sys.stderr)
        return 1

    if args.command == "get":
        return cmd_operation(args, f"get-{args.item.lower()}")
    if args.command == "set":
        return cmd_operation(args, f"set-{args.type.lower()}", args.value)
    if args.command == "test":
        return cmd_operation(args, f"test-{args.type.lower()}")
    return cmd_send(args)


if __name__ == "__main__":
    sys.exit(main())
