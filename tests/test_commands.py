"""Tests for command IDs, the source table, and command builders."""

import pytest

from comtest_mcp.protocol.commands import (
    SETTABLE_SOURCES,
    Command,
    Source,
    build_command,
    build_command_hex,
    build_get_bluetooth_status,
    build_get_checksum,
    build_get_ip,
    build_get_mac,
    build_get_source,
    build_get_wifi_status,
    build_set_source,
    build_set_source_hex,
    resolve_source,
    source_name,
    status_name,
)
from comtest_mcp.protocol.framing import validate_frame


def test_command_enum_values():
    """Key command IDs match the device firmware."""
    assert Command.ACK == 0x01
    assert Command.GET_MAC_ADDR == 0x0C
    assert Command.RET_MAC_ADDR == 0x0D
    assert Command.GET_CHECKSUM == 0x12
    assert Command.RET_CHECKSUM == 0x13
    assert Command.GET_SOURCE == 0x14
    assert Command.RET_SOURCE == 0x15
    assert Command.SET_SOURCE == 0x16
    assert Command.GET_IP_INFO == 0x31
    assert Command.RET_IP_INFO == 0x32
    assert Command.GET_WIFI_STATUS == 0x33
    assert Command.RET_WIFI_STATUS == 0x34
    assert Command.CHECK_BLUETOOTH == 0x38
    assert Command.RET_BLUETOOTH_STATUS == 0x39


def test_query_builders_have_no_payload():
    """Each query builder emits its request ID with an empty payload."""
    cases = [
        (build_get_checksum, Command.GET_CHECKSUM),
        (build_get_ip, Command.GET_IP_INFO),
        (build_get_mac, Command.GET_MAC_ADDR),
        (build_get_source, Command.GET_SOURCE),
        (build_get_wifi_status, Command.GET_WIFI_STATUS),
        (build_get_bluetooth_status, Command.CHECK_BLUETOOTH),
    ]
    for builder, command in cases:
        frame = builder()
        assert frame == build_command(command)
        parsed = validate_frame(frame)
        assert parsed.valid
        assert parsed.response_cmd_id == command
        assert parsed.payload == b""


def test_known_query_frames():
    """Wire bytes of the common queries."""
    assert build_command_hex(Command.GET_CHECKSUM) == "FF 33 06 03 12 E5"
    assert build_command_hex(Command.GET_MAC_ADDR) == "FF 33 06 03 0C EB"
    assert build_command_hex(Command.GET_IP_INFO) == "FF 33 06 03 31 C6"


def test_build_set_source():
    """SET_SOURCE carries the source ID as its only payload byte."""
    frame = build_set_source(Source.HDMI1)
    assert frame == bytes([0xFF, 0x33, 0x07, 0x03, 0x16, 0x08, 0xD8])
    parsed = validate_frame(frame)
    assert parsed.response_cmd_id == Command.SET_SOURCE
    assert parsed.payload == bytes([8])


def test_build_set_source_hex():
    assert build_set_source_hex(Source.ATV) == "FF 33 07 03 16 00 E0"


def test_set_source_bounds():
    with pytest.raises(ValueError):
        build_set_source(256)
    with pytest.raises(ValueError):
        build_set_source(-1)


def test_resolve_source_case_insensitive():
    assert resolve_source("hdmi1") == 8
    assert resolve_source("HDMI1") == 8
    assert resolve_source(" Usb2 ") == 24


def test_resolve_source_rejects_unsettable():
    """Decodable but unsettable sources are refused by name."""
    with pytest.raises(ValueError) as exc:
        resolve_source("scart1")
    assert "hdmi1" in str(exc.value)
    with pytest.raises(ValueError):
        resolve_source("hdmi9")


def test_settable_sources_subset():
    assert set(SETTABLE_SOURCES.values()) < set(Source)
    assert "vga2" not in SETTABLE_SOURCES


def test_source_name_covers_all_ids():
    """Every documented ID 0-26 has a canonical name."""
    for source_id in range(27):
        assert not source_name(source_id).startswith("Unknown")
    assert source_name(26) == "USB4"
    assert source_name(99) == "Unknown(0x63)"


def test_status_name():
    assert status_name(0) == "OK"
    assert status_name(1) == "Checking"
    assert status_name(2) == "Failed"
    assert status_name(7) == "Unknown(7)"
