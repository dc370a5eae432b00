from __future__ import annotations

import logging

from bledriver.runtime.session import Session
from bledriver.runtime.state import ConnectionState


class Queue:
    def __init__(self):
        self.items = []

    def submit(self, attribute_id, data):
        self.items.append((attribute_id, data))


def test_connect_cycle_updates_state_and_counters(sensor_identity, clock):
    s = Session(sensor_identity, clock=clock)
    assert s.state is ConnectionState.DISCONNECTED

    assert s.begin_connect() is True
    assert s.state is ConnectionState.CONNECTING
    s.connect_failed("out of range")
    s.begin_connect()
    s.connect_failed("out of range")
    assert s.retry_count == 2
    assert s.status().last_error == "out of range"

    s.begin_connect()
    s.on_connected()
    assert s.is_connected
    assert s.connected_event.is_set()
    assert s.retry_count == 0
    assert s.status().connects == 1
    assert s.begin_connect() is False


def test_disconnect_sets_wake_and_clears_connected(sensor_identity, clock):
    s = Session(sensor_identity, clock=clock)
    s.begin_connect()
    s.on_connected()

    s.on_disconnected()

    assert s.state is ConnectionState.DISCONNECTED
    assert not s.connected_event.is_set()
    assert s.wake_event.is_set()


def test_late_failure_after_connect_is_ignored(sensor_identity):
    s = Session(sensor_identity)
    s.begin_connect()
    s.on_connected()
    s.connect_failed("timeout")
    assert s.is_connected
    assert s.retry_count == 0


def test_rejected_transition_is_logged(sensor_identity, caplog):
    s = Session(sensor_identity)
    s.begin_connect()
    s.on_connected()
    with caplog.at_level(logging.WARNING):
        s._transition(ConnectionState.CONNECTING, "bogus")
    assert s.is_connected
    assert any("SESSION_TRANSITION_REJECTED" in r.getMessage() for r in caplog.records)


def test_actuation_flag_is_exclusive(tag_identity):
    s = Session(tag_identity)
    assert s.try_begin_actuation() is True
    assert s.try_begin_actuation() is False
    assert s.status().actuation_in_flight is True
    s.end_actuation()
    assert s.try_begin_actuation() is True


def test_notifications_go_to_queue_and_touch_activity(sensor_identity, clock):
    q = Queue()
    s = Session(sensor_identity, notifications=q, clock=clock)
    clock.now = 12.0
    s.on_notification(49, b"\xbc\x02")
    clock.now = 15.0

    assert q.items == [(49, b"\xbc\x02")]
    assert s.last_activity == 12.0
    assert s.status().last_activity_s == 3.0


def test_notification_without_consumer_is_dropped(sensor_identity):
    Session(sensor_identity).on_notification(49, b"\x00\x00")


def test_connect_in_flight_is_not_restarted(sensor_identity, clock):
    s = Session(sensor_identity, clock=clock)
    assert s.begin_connect() is True

    assert s.begin_connect() is False
    assert s.state is ConnectionState.CONNECTING

    s.connect_failed("timeout")
    assert s.begin_connect() is True
