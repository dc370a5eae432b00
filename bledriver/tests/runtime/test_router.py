from __future__ import annotations

import logging

import pytest

from bledriver.core.errors import DecodeError
from bledriver.model.quantity import QuantityKind
from bledriver.runtime.router import NotificationRouter, decode_value


def test_temperature_700_publishes_exact_table_entry(sensor_identity, pipeline, publisher, expected_value):
    router = NotificationRouter(sensor_identity, pipeline, publisher)

    reading = router.on_notification(49, (700).to_bytes(2, "little"))

    assert reading is not None
    assert reading.kind is QuantityKind.TEMPERATURE
    assert reading.raw == 700
    assert reading.value == expected_value(QuantityKind.TEMPERATURE, 700)
    assert publisher.readings == [(sensor_identity, reading)]


def test_each_handle_routes_to_its_quantity(sensor_identity, pipeline, publisher):
    router = NotificationRouter(sensor_identity, pipeline, publisher)
    router.on_notification(37, b"\x7b\x00")
    router.on_notification(53, b"\x32\x00")

    kinds = [r.kind for _, r in publisher.readings]
    assert kinds == [QuantityKind.ILLUMINANCE, QuantityKind.MOISTURE]
    assert publisher.readings[0][1].key == 120
    assert publisher.readings[1][1].key == 210


def test_unknown_handle_is_logged_and_dropped(sensor_identity, pipeline, publisher, caplog):
    router = NotificationRouter(sensor_identity, pipeline, publisher)
    with caplog.at_level(logging.INFO):
        assert router.on_notification(68, b"\x64\x00") is None
    assert publisher.readings == []
    recs = [r for r in caplog.records if "NOTIFICATION_UNKNOWN_HANDLE" in r.getMessage()]
    assert recs and recs[0].levelno == logging.INFO


def test_short_payload_is_logged_and_dropped(sensor_identity, pipeline, publisher, caplog):
    router = NotificationRouter(sensor_identity, pipeline, publisher)
    with caplog.at_level(logging.WARNING):
        assert router.on_notification(49, b"\x01") is None
    assert publisher.readings == []
    assert any("NOTIFICATION_DECODE_FAILED" in r.getMessage() for r in caplog.records)


def test_publisher_errors_do_not_escape(sensor_identity, pipeline, caplog):
    class Broken:
        def publish_reading(self, identity, reading):
            raise RuntimeError("bus down")

    router = NotificationRouter(sensor_identity, pipeline, Broken())
    with caplog.at_level(logging.ERROR):
        assert router.on_notification(49, b"\xbc\x02") is not None
    assert any("PUBLISH_READING_ERROR" in r.getMessage() for r in caplog.records)


def test_missing_calibration_key_publishes_zero(sensor_identity, pipeline_factory, publisher):
    p = pipeline_factory(missing={QuantityKind.TEMPERATURE: [700]})
    router = NotificationRouter(sensor_identity, p, publisher)

    reading = router.on_notification(49, b"\xbc\x02")

    assert reading.value == 0.0
    assert reading.calibrated is False
    assert len(publisher.readings) == 1


def test_decode_value():
    assert decode_value(b"\xbc\x02\x00") == 700
    with pytest.raises(DecodeError):
        decode_value(b"")
