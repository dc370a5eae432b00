from __future__ import annotations

from bledriver.protocol.defs import LIVE_MODE_OFF, LIVE_MODE_ON
from bledriver.runtime._internal.commands import CommandIssuer
from bledriver.runtime.duty_cycle import CycleOutcome, DutyCycleScheduler
from bledriver.runtime.session import Session

SAMPLE_S = 5.0
SLEEP_S = 30.0


def _setup(transport, clock, identity, cmd_sink=None):
    session = Session(identity, clock=clock)
    transport.attach(identity.address, session)
    transport.connect(identity.address, identity.address_kind)
    scheduler = DutyCycleScheduler(
        CommandIssuer(transport, cmd_sink=cmd_sink),
        sample_window_s=SAMPLE_S,
        sleep_window_s=SLEEP_S,
        clock=clock,
    )
    return session, scheduler


def test_disable_is_sent_before_sleep_even_without_notifications(transport, clock, sensor_identity):
    session, scheduler = _setup(transport, clock, sensor_identity)
    sent_at_wait = []
    clock.on_wait = lambda ev, t: sent_at_wait.append((t, list(transport.sent_payloads())))

    outcome = scheduler.run_cycle(session, lambda: True)

    assert outcome is CycleOutcome.COMPLETED
    assert clock.waits == [SAMPLE_S, SLEEP_S]
    assert sent_at_wait[0] == (SAMPLE_S, [LIVE_MODE_ON])
    assert sent_at_wait[1] == (SLEEP_S, [LIVE_MODE_ON, LIVE_MODE_OFF])


def test_disconnect_mid_sample_aborts_without_disable(transport, clock, sensor_identity):
    session, scheduler = _setup(transport, clock, sensor_identity)

    def drop_during_sample(ev, t):
        if t == SAMPLE_S:
            transport.drop(sensor_identity.address)

    clock.on_wait = drop_during_sample

    outcome = scheduler.run_cycle(session, lambda: True)

    assert outcome is CycleOutcome.LINK_LOST
    assert transport.sent_payloads() == [LIVE_MODE_ON]
    assert clock.waits == [SAMPLE_S]
    assert not session.is_connected


def test_disconnect_mid_sleep_ends_run(transport, clock, sensor_identity):
    session, scheduler = _setup(transport, clock, sensor_identity)

    def drop_during_sleep(ev, t):
        if t == SLEEP_S:
            transport.drop(sensor_identity.address)

    clock.on_wait = drop_during_sleep

    assert scheduler.run_cycle(session, lambda: True) is CycleOutcome.LINK_LOST
    assert transport.sent_payloads() == [LIVE_MODE_ON, LIVE_MODE_OFF]


def test_run_subscribes_once_and_repeats_cycles(transport, clock, sensor_identity):
    session, scheduler = _setup(transport, clock, sensor_identity)
    sleeps = []

    def drop_on_third_sleep(ev, t):
        if t == SLEEP_S:
            sleeps.append(t)
            if len(sleeps) == 3:
                transport.drop(sensor_identity.address)

    clock.on_wait = drop_on_third_sleep

    outcome = scheduler.run(session, lambda: True)

    assert outcome is CycleOutcome.LINK_LOST
    notifies = transport.calls_named("notify")
    assert [(c[3], c[4]) for c in notifies] == [(36, 39), (52, 55), (48, 51)]
    assert all(c[2] is True and c[5] is True and c[6] is False for c in notifies)
    assert transport.sent_payloads() == [LIVE_MODE_ON, LIVE_MODE_OFF] * 3


def test_command_failure_is_logged_and_cycle_continues(transport, clock, sensor_identity, cmd_sink):
    session, scheduler = _setup(transport, clock, sensor_identity, cmd_sink=cmd_sink)
    transport.failing_payloads.add(LIVE_MODE_ON)

    outcome = scheduler.run_cycle(session, lambda: True)

    assert outcome is CycleOutcome.COMPLETED
    assert transport.sent_payloads() == [LIVE_MODE_ON, LIVE_MODE_OFF]
    assert [(e.name, e.kind) for e in cmd_sink.events] == [
        ("LIVE_MODE_ON", "failed"),
        ("LIVE_MODE_OFF", "sent"),
    ]


def test_stopped_flag_prevents_new_phase(transport, clock, sensor_identity):
    session, scheduler = _setup(transport, clock, sensor_identity)

    assert scheduler.run_cycle(session, lambda: False) is CycleOutcome.STOPPED
    assert transport.sent_payloads() == []
    assert clock.waits == []


def test_shutdown_during_sample_still_disables_live_mode(transport, clock, sensor_identity):
    session, scheduler = _setup(transport, clock, sensor_identity)
    running = {"on": True}

    def shutdown(ev, t):
        running["on"] = False
        session.interrupt()

    clock.on_wait = shutdown

    outcome = scheduler.run_cycle(session, lambda: running["on"])

    assert outcome is CycleOutcome.STOPPED
    assert transport.sent_payloads() == [LIVE_MODE_ON, LIVE_MODE_OFF]
    assert clock.waits == [SAMPLE_S]


def test_not_connected_returns_link_lost(transport, clock, sensor_identity):
    session = Session(sensor_identity, clock=clock)
    scheduler = DutyCycleScheduler(CommandIssuer(transport), sample_window_s=1, sleep_window_s=1, clock=clock)
    assert scheduler.run_cycle(session, lambda: True) is CycleOutcome.LINK_LOST
    assert transport.sent_payloads() == []
