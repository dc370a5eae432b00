# bledriver/runtime/supervisor.py
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from bledriver.core.errors import DecodeError
from bledriver.interfaces.command_sink import CommandSink
from bledriver.interfaces.publisher import Publisher
from bledriver.model.calibration import CalibrationPipeline
from bledriver.model.identity import PeripheralIdentity
from bledriver.model.quantity import QuantityKind
from bledriver.model.reading import SensorReading
from bledriver.protocol.defs import BATTERY_HANDLE, QUANTITY_HANDLES
from bledriver.transport.base import RadioTransport
from bledriver.transport.errors import TransportError

from ._internal.commands import CommandIssuer
from ._internal.notify_worker import NotifyWorker
from .actuation import ActuationProtocol, ActuationRequest
from .clock import Clock, SystemClock
from .duty_cycle import DutyCycleScheduler
from .retry import RetryPolicy
from .router import NotificationRouter, decode_value
from .session import Session
from .state import SessionStatus


class SessionSupervisor:
    """
    Per-device control loop.

    Owns the device's Session, its single-consumer notification path and
    the role-specific protocol:
      telemetry: DutyCycleScheduler runs for as long as the link is up
      locator:   idle while connected, ActuationProtocol on demand

    Reconnection is unbounded with a fixed delay. The run flag is checked
    at the top of every iteration; stop() wakes any wait in progress.
    """

    def __init__(
        self,
        identity: PeripheralIdentity,
        *,
        transport: RadioTransport,
        pipeline: CalibrationPipeline,
        is_running: Callable[[], bool],
        publisher: Optional[Publisher] = None,
        cmd_sink: Optional[CommandSink] = None,
        sample_window_s: float = 5.0,
        sleep_window_s: float = 5.0,
        reconnect_delay_s: float = 5.0,
        connect_timeout_s: float = 10.0,
        actuation_policy: Optional[RetryPolicy] = None,
        activation_hold_s: float = 5.0,
        idle_poll_s: float = 1.0,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.identity = identity
        self._transport = transport
        self._is_running = is_running
        self._clock = clock or SystemClock()
        self._log = logger or logging.getLogger(__name__)

        self.reconnect_policy = RetryPolicy.unbounded(reconnect_delay_s)
        self.connect_timeout_s = float(connect_timeout_s)
        self.idle_poll_s = float(idle_poll_s)

        self.router = NotificationRouter(identity, pipeline, publisher, logger=self._log)
        self._worker = self._new_worker()
        self.session = Session(identity, notifications=self._worker, clock=self._clock, logger=self._log)

        commands = CommandIssuer(transport, cmd_sink=cmd_sink, logger=self._log)
        self.scheduler: Optional[DutyCycleScheduler] = None
        if identity.is_telemetry:
            self.scheduler = DutyCycleScheduler(
                commands,
                sample_window_s=sample_window_s,
                sleep_window_s=sleep_window_s,
                clock=self._clock,
                logger=self._log,
            )
        self.actuation = ActuationProtocol(
            commands,
            is_running=self._should_run,
            connect_policy=actuation_policy,
            connect_timeout_s=connect_timeout_s,
            hold_s=activation_hold_s,
            clock=self._clock,
            publisher=publisher,
            logger=self._log,
        )

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._activation: Optional[ActuationRequest] = None

    @property
    def address(self) -> str:
        return self.identity.address

    @property
    def is_started(self) -> bool:
        t = self._thread
        return t is not None and t.is_alive()

    # ---------------- lifecycle ----------------
    def start(self) -> None:
        if self.is_started:
            return
        self._stop_event.clear()
        if self._worker.ident is not None:
            # threads cannot be restarted
            self._worker = self._new_worker()
            self.session.bind_notifications(self._worker)
        self._worker.start()
        self._transport.attach(self.address, self.session)
        self._thread = threading.Thread(
            target=self._loop,
            name=f"session-{self.address}",
            daemon=True,
        )
        self._thread.start()
        self._log.info("SUPERVISOR_START address=%s role=%s", self.address, self.identity.role.value)

    def stop(self, timeout_s: float = 5.0) -> None:
        self._stop_event.set()
        self.session.interrupt()
        t = self._thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout=timeout_s)
        self._thread = None
        self._finish_activation()
        self._worker.stop()
        if self._worker.is_alive():
            self._worker.join(timeout=timeout_s)
        self._log.info("SUPERVISOR_STOP address=%s", self.address)

    # ---------------- state machine ----------------
    def step(self) -> None:
        """One iteration of the supervising loop."""
        if not self._should_run():
            return

        session = self.session
        if not session.is_connected:
            if not self._connect_once():
                delay = self.reconnect_policy.delay_after(session.retry_count)
                self._clock.wait(self._stop_event, delay)
            return

        if self.scheduler is not None:
            self.scheduler.run(session, self._should_run)
            return

        # Locator: idle until the link drops or shutdown.
        session.wake_event.clear()
        if session.is_connected and self._should_run():
            self._clock.wait(session.wake_event, self.idle_poll_s)

    def _loop(self) -> None:
        while self._should_run():
            try:
                self.step()
            except Exception:
                self._log.exception("SUPERVISOR_STEP_ERROR address=%s", self.address)
                self._clock.wait(self._stop_event, self.reconnect_policy.delay_after(self.session.retry_count))

    def _finish_activation(self) -> None:
        """Let an activation in its hold phase send LOCATOR_ALERT_OFF before shutdown."""
        req = self._activation
        if req is None or req.done():
            return
        budget = self.actuation.hold_s + self.connect_timeout_s + 1.0
        self._log.info("SUPERVISOR_WAIT_ACTUATION address=%s budget_s=%.1f", self.address, budget)
        if not req.wait_done(timeout=budget):
            self._log.warning("SUPERVISOR_ACTUATION_STILL_RUNNING address=%s", self.address)

    def _new_worker(self) -> NotifyWorker:
        return NotifyWorker(
            self.router.on_notification,
            name=f"notify-{self.identity.address}",
            logger=self._log,
        )

    def _should_run(self) -> bool:
        return self._is_running() and not self._stop_event.is_set()

    def _connect_once(self) -> bool:
        session = self.session
        if session.actuation_in_flight:
            # the actuation path owns connecting for now
            self._clock.wait(session.connected_event, self.connect_timeout_s)
            return session.is_connected

        if not session.begin_connect():
            # already up, or the actuation path is connecting
            self._clock.wait(session.connected_event, self.connect_timeout_s)
            return session.is_connected
        attempt = session.retry_count + 1
        self._log.info("SESSION_CONNECT address=%s attempt=%d", self.address, attempt)
        try:
            self._transport.connect(self.address, self.identity.address_kind)
        except TransportError as e:
            session.connect_failed(str(e))
            self._log.warning("SESSION_CONNECT_FAILED address=%s attempt=%d err=%s", self.address, attempt, e)
            return False
        except Exception as e:
            session.connect_failed(repr(e))
            raise

        if self._clock.wait(session.connected_event, self.connect_timeout_s) or session.is_connected:
            return True
        session.connect_failed("connect timeout")
        self._log.warning("SESSION_CONNECT_TIMEOUT address=%s attempt=%d", self.address, attempt)
        return False

    # ---------------- on-demand operations ----------------
    def activate(self) -> ActuationRequest:
        req = self.actuation.activate(self.session)
        self._activation = req
        return req

    def read_quantity(self, kind: QuantityKind) -> Optional[SensorReading]:
        """
        Read a quantity's value attribute and calibrate it.
        Returns None when the payload cannot be decoded.
        """
        kind = QuantityKind(kind)
        handle = QUANTITY_HANDLES[kind]
        data = self._transport.read_attribute(self.address, handle)
        return self.router.decode(kind, data, attribute_id=handle)

    def read_battery_level(self) -> int:
        """Battery attribute as a raw integer, uncalibrated."""
        data = self._transport.read_attribute(self.address, BATTERY_HANDLE)
        try:
            return decode_value(data)
        except DecodeError:
            self._log.warning("BATTERY_DECODE_FAILED address=%s data=%s", self.address, bytes(data).hex())
            raise

    def status(self) -> SessionStatus:
        return self.session.status()
