# bledriver/runtime/actuation.py
from __future__ import annotations

import logging
import threading
import time
from concurrent import futures
from concurrent.futures import Future
from enum import Enum
from typing import Any, Callable, List, Optional

from bledriver.core.errors import (
    ActuationCommandError,
    AlreadyInProgressError,
    BleDriverError,
    ConnectionExhaustedError,
    NotRunningError,
)
from bledriver.interfaces.publisher import Publisher
from bledriver.model.identity import PeripheralIdentity
from bledriver.protocol.defs import LOCATOR_ALERT_OFF, LOCATOR_ALERT_ON
from bledriver.transport.errors import TransportError

from ._internal.commands import CommandIssuer
from .clock import Clock, SystemClock
from .retry import RetryPolicy
from .session import Session

EventCallback = Callable[["ActuationEvent"], Any]


class ActuationEvent(str, Enum):
    STARTED = "started"
    STOPPED = "stopped"


class ActuationRequest:
    """
    Completion handle for one activation.

    Delivers STARTED then STOPPED, or a single failure. A request that has
    reported STARTED is never failed afterwards.
    """

    def __init__(self, identity: PeripheralIdentity):
        self.identity = identity
        self.started: Future = Future()
        self.stopped: Future = Future()
        self._events: List[ActuationEvent] = []
        self._callbacks: List[EventCallback] = []
        self._lock = threading.Lock()

    @property
    def events(self) -> List[ActuationEvent]:
        with self._lock:
            return list(self._events)

    def on_event(self, cb: EventCallback) -> None:
        with self._lock:
            self._callbacks.append(cb)

    def done(self) -> bool:
        return self.stopped.done()

    def wait_started(self, timeout: Optional[float] = None) -> ActuationEvent:
        """Block until the tag is active. Raises the failure, or TimeoutError."""
        try:
            return self.started.result(timeout=timeout)
        except futures.TimeoutError:
            raise TimeoutError(f"{self.identity.address} did not start within {timeout}s") from None

    def wait(self, timeout: Optional[float] = None) -> ActuationEvent:
        """Block until the whole activation is over. Raises the failure, or TimeoutError."""
        deadline = None if timeout is None else time.monotonic() + timeout
        self.wait_started(timeout)
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            return self.stopped.result(timeout=remaining)
        except futures.TimeoutError:
            raise TimeoutError(f"{self.identity.address} did not stop within {timeout}s") from None

    def wait_done(self, timeout: Optional[float] = None) -> bool:
        """Wait for STOPPED or a failure without raising. False on timeout."""
        futures.wait([self.stopped], timeout=timeout)
        return self.stopped.done()

    # ---------------- producer side ----------------
    def _emit(self, event: ActuationEvent) -> None:
        fut = self.started if event is ActuationEvent.STARTED else self.stopped
        with self._lock:
            if fut.done():
                return
            self._events.append(event)
            callbacks = list(self._callbacks)
        for cb in callbacks:
            try:
                cb(event)
            except Exception:
                logging.getLogger(__name__).exception("ACTUATION_CALLBACK_ERROR event=%s", event.value)
        fut.set_result(event)

    def _fail(self, exc: BaseException) -> None:
        with self._lock:
            if self.started.done():
                return
        self.started.set_exception(exc)
        self.stopped.set_exception(exc)


class ActuationProtocol:
    """
    Bounded-retry "alert on, hold, alert off" against one locator tag.

    activate() checks the run flag and the session's exclusive actuation flag
    synchronously, then runs the protocol on its own thread:
      1. connect if needed, at most connect_policy.max_attempts tries
      2. LOCATOR_ALERT_ON, emit STARTED, publish active=True
      3. hold for hold_s
      4. LOCATOR_ALERT_OFF, emit STOPPED, publish active=False
    The actuation flag is released before STOPPED is delivered.
    """

    def __init__(
        self,
        commands: CommandIssuer,
        *,
        is_running: Callable[[], bool],
        connect_policy: Optional[RetryPolicy] = None,
        connect_timeout_s: float = 10.0,
        hold_s: float = 5.0,
        clock: Optional[Clock] = None,
        publisher: Optional[Publisher] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._commands = commands
        self._is_running = is_running
        self.connect_policy = connect_policy or RetryPolicy.bounded(3, 1.0)
        self.connect_timeout_s = float(connect_timeout_s)
        self.hold_s = float(hold_s)
        self._clock = clock or SystemClock()
        self._publisher = publisher
        self._log = logger or logging.getLogger(__name__)

    def activate(self, session: Session) -> ActuationRequest:
        if not self._is_running():
            raise NotRunningError(
                "Driver is not running.",
                hint="Start the driver before sending actuation commands.",
                details={"address": session.address},
            )
        if not session.try_begin_actuation():
            raise AlreadyInProgressError(
                f"An activation is already in progress for {session.address}.",
                details={"address": session.address},
            )

        req = ActuationRequest(session.identity)
        self._log.info("ACTUATION_REQUESTED address=%s", session.address)
        t = threading.Thread(
            target=self._run,
            args=(session, req),
            name=f"actuation-{session.address}",
            daemon=True,
        )
        try:
            t.start()
        except RuntimeError:
            session.end_actuation()
            raise
        return req

    def run(self, session: Session, req: ActuationRequest) -> None:
        """Synchronous body of an activation. The caller must hold the actuation flag."""
        self._run(session, req)

    # ---------------- internals ----------------
    def _run(self, session: Session, req: ActuationRequest) -> None:
        try:
            self._ensure_connected(session)
            if not self._is_running():
                raise NotRunningError(
                    "Driver stopped before the alert was sent.",
                    details={"address": session.address},
                )
            if not self._commands.send(session.address, "LOCATOR_ALERT_ON", LOCATOR_ALERT_ON):
                raise ActuationCommandError(
                    f"Alert command failed for {session.address}.",
                    details={"address": session.address},
                )
        except BleDriverError as e:
            session.end_actuation()
            self._log.warning("ACTUATION_FAILED address=%s code=%s msg=%s", session.address, e.code, e.message)
            req._fail(e)
            return
        except Exception as e:
            session.end_actuation()
            self._log.exception("ACTUATION_ERROR address=%s", session.address)
            req._fail(e)
            return

        try:
            req._emit(ActuationEvent.STARTED)
            self._publish_state(session, True)
            self._log.info("ACTUATION_STARTED address=%s hold_s=%.1f", session.address, self.hold_s)

            self._clock.sleep(self.hold_s)

            self._commands.send(session.address, "LOCATOR_ALERT_OFF", LOCATOR_ALERT_OFF)
            self._publish_state(session, False)
        finally:
            session.end_actuation()
            req._emit(ActuationEvent.STOPPED)
            self._log.info("ACTUATION_STOPPED address=%s", session.address)

    def _ensure_connected(self, session: Session) -> None:
        policy = self.connect_policy
        attempts = 0
        while not session.is_connected:
            if not self._is_running():
                raise NotRunningError(
                    "Driver stopped while connecting.",
                    details={"address": session.address},
                )
            attempts += 1
            if self._try_connect(session, attempts):
                return
            if policy.exhausted(attempts):
                raise ConnectionExhaustedError(
                    f"Could not connect to {session.address} after {attempts} attempts.",
                    hint="Check the tag is in range and powered.",
                    details={"address": session.address, "attempts": attempts},
                )
            self._clock.sleep(policy.delay_after(attempts))

    def _try_connect(self, session: Session, attempt: int) -> bool:
        self._log.info("ACTUATION_CONNECT address=%s attempt=%d", session.address, attempt)
        if not session.begin_connect():
            # the supervisor loop is connecting; never issue a second connect
            self._clock.wait(session.connected_event, self.connect_timeout_s)
            if session.is_connected:
                return True
            self._log.warning("ACTUATION_CONNECT_WAIT_TIMEOUT address=%s attempt=%d", session.address, attempt)
            return False
        try:
            self._commands.transport.connect(session.address, session.identity.address_kind)
        except TransportError as e:
            session.connect_failed(str(e))
            self._log.warning("ACTUATION_CONNECT_FAILED address=%s attempt=%d err=%s", session.address, attempt, e)
            return False
        except Exception as e:
            session.connect_failed(repr(e))
            raise

        if self._clock.wait(session.connected_event, self.connect_timeout_s) or session.is_connected:
            return True
        session.connect_failed("connect timeout")
        self._log.warning("ACTUATION_CONNECT_TIMEOUT address=%s attempt=%d", session.address, attempt)
        return False

    def _publish_state(self, session: Session, active: bool) -> None:
        pub = self._publisher
        if pub is None:
            return
        try:
            pub.publish_locator_state(session.identity, active)
        except Exception:
            self._log.exception("PUBLISH_LOCATOR_STATE_ERROR address=%s", session.address)
