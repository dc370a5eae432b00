from __future__ import annotations

import pytest

from bledriver.model.quantity import QuantityKind
from bledriver.protocol.defs import (
    BATTERY_HANDLE,
    LIVE_MODE_OFF,
    LIVE_MODE_ON,
    LOCATOR_ALERT_OFF,
    LOCATOR_ALERT_ON,
    NOTIFY_HANDLES,
    QUANTITY_HANDLES,
    TELEMETRY_RANGES,
    AttributeRange,
    att_write_request,
    parse_att_write_request,
)


def test_command_payload_bytes():
    assert LIVE_MODE_ON == bytes.fromhex("12390001")
    assert LIVE_MODE_OFF == bytes.fromhex("12390000")
    assert LOCATOR_ALERT_ON == bytes.fromhex("121b0002")
    assert LOCATOR_ALERT_OFF == bytes.fromhex("121b0000")


def test_handles():
    assert NOTIFY_HANDLES == {
        37: QuantityKind.ILLUMINANCE,
        49: QuantityKind.TEMPERATURE,
        53: QuantityKind.MOISTURE,
    }
    assert QUANTITY_HANDLES[QuantityKind.TEMPERATURE] == 49
    assert BATTERY_HANDLE == 68
    assert BATTERY_HANDLE not in NOTIFY_HANDLES


def test_telemetry_ranges_cover_value_handles():
    ranges = dict(TELEMETRY_RANGES)
    assert ranges[QuantityKind.ILLUMINANCE] == AttributeRange(36, 39)
    assert ranges[QuantityKind.MOISTURE] == AttributeRange(52, 55)
    assert ranges[QuantityKind.TEMPERATURE] == AttributeRange(48, 51)
    for handle, kind in NOTIFY_HANDLES.items():
        assert handle in ranges[kind]


def test_attribute_range_validation():
    with pytest.raises(ValueError):
        AttributeRange(10, 9)
    with pytest.raises(ValueError):
        AttributeRange(0, 0x10000)
    assert "37" not in AttributeRange(36, 39)


def test_parse_att_write_request():
    assert parse_att_write_request(att_write_request(0x0039, b"\x01\x02")) == (0x39, b"\x01\x02")


@pytest.mark.parametrize("payload", [b"", b"\x12\x39", b"\x52\x39\x00\x01"])
def test_parse_att_write_request_rejects(payload: bytes):
    with pytest.raises(ValueError):
        parse_att_write_request(payload)


def test_att_write_request_handle_range():
    with pytest.raises(ValueError):
        att_write_request(0x10000, b"")
