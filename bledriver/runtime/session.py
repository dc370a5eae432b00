# bledriver/runtime/session.py
from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol

from bledriver.interfaces.event_sink import DeviceEventSink
from bledriver.model.identity import PeripheralIdentity

from .clock import Clock, SystemClock
from .state import TRANSITIONS, ConnectionState, SessionStatus


class NotificationQueue(Protocol):
    def submit(self, attribute_id: int, data: bytes) -> None: ...


class Session(DeviceEventSink):
    """
    Per-device tracking record and transport event sink.

    Holds the connection state machine (DISCONNECTED -> CONNECTING ->
    CONNECTED -> DISCONNECTED), the consecutive failed-connect counter, the
    last-activity timestamp, and the exclusive actuation flag.

    Two events let loops wait on the state without polling:
      connected_event: set while CONNECTED
      wake_event:      set on disconnect or interrupt(); waiters clear it
                       before checking state, then wait on it
    """

    def __init__(
        self,
        identity: PeripheralIdentity,
        *,
        notifications: Optional[NotificationQueue] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.identity = identity
        self._notifications = notifications
        self._clock = clock or SystemClock()
        self._log = logger or logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._retry_count = 0
        self._connects = 0
        self._last_activity: Optional[float] = None
        self._last_error: Optional[str] = None
        self._actuating = False

        self.connected_event = threading.Event()
        self.wake_event = threading.Event()

    # ---------------- state ----------------
    @property
    def address(self) -> str:
        return self.identity.address

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return self._state is ConnectionState.CONNECTED

    @property
    def retry_count(self) -> int:
        with self._lock:
            return self._retry_count

    @property
    def last_activity(self) -> Optional[float]:
        with self._lock:
            return self._last_activity

    def status(self) -> SessionStatus:
        with self._lock:
            age = (
                self._clock.monotonic() - self._last_activity
                if self._last_activity is not None
                else None
            )
            return SessionStatus(
                identity=self.identity,
                state=self._state,
                retry_count=self._retry_count,
                connects=self._connects,
                last_activity_s=age,
                actuation_in_flight=self._actuating,
                last_error=self._last_error,
            )

    # ---------------- connect bookkeeping (called by loops) ----------------
    def begin_connect(self) -> bool:
        """
        DISCONNECTED -> CONNECTING. False if the link is already up or another
        caller's connect is in flight; that caller should wait on connected_event.
        """
        with self._lock:
            if self._state is not ConnectionState.DISCONNECTED:
                return False
            self._transition(ConnectionState.CONNECTING, "connect_requested")
            return True

    def connect_failed(self, reason: str) -> None:
        """CONNECTING -> DISCONNECTED, counting the failed attempt."""
        with self._lock:
            if self._state is ConnectionState.CONNECTED:
                # success callback won the race
                return
            self._retry_count += 1
            self._last_error = reason
            self._transition(ConnectionState.DISCONNECTED, f"connect_failed: {reason}")

    def bind_notifications(self, notifications: Optional[NotificationQueue]) -> None:
        self._notifications = notifications

    def interrupt(self) -> None:
        """Wake any loop waiting on this session (shutdown)."""
        self.wake_event.set()

    # ---------------- actuation flag ----------------
    def try_begin_actuation(self) -> bool:
        with self._lock:
            if self._actuating:
                return False
            self._actuating = True
            return True

    def end_actuation(self) -> None:
        with self._lock:
            self._actuating = False

    @property
    def actuation_in_flight(self) -> bool:
        with self._lock:
            return self._actuating

    # ---------------- DeviceEventSink ----------------
    def on_connected(self) -> None:
        with self._lock:
            if self._state is ConnectionState.CONNECTED:
                return
            self._transition(ConnectionState.CONNECTED, "transport_connected")
            self._retry_count = 0
            self._connects += 1
            self._last_error = None
            self._touch()
            self.connected_event.set()

    def on_disconnected(self) -> None:
        with self._lock:
            if self._state is not ConnectionState.DISCONNECTED:
                self._transition(ConnectionState.DISCONNECTED, "transport_disconnected")
            self.connected_event.clear()
            self._touch()
        self.wake_event.set()

    def on_notification(self, attribute_id: int, data: bytes) -> None:
        with self._lock:
            self._touch()
        q = self._notifications
        if q is None:
            self._log.debug("NOTIFICATION_DROPPED address=%s handle=%d (no consumer)", self.address, attribute_id)
            return
        q.submit(attribute_id, data)

    # ---------------- internals ----------------
    def _touch(self) -> None:
        self._last_activity = self._clock.monotonic()

    def _transition(self, new: ConnectionState, reason: str) -> None:
        old = self._state
        if old is new:
            return
        if (old, new) not in TRANSITIONS:
            self._log.warning(
                "SESSION_TRANSITION_REJECTED address=%s from=%s to=%s reason=%s",
                self.address,
                old.value,
                new.value,
                reason,
            )
            return
        self._state = new
        self._log.info(
            "SESSION_STATE address=%s %s->%s reason=%s",
            self.address,
            old.value,
            new.value,
            reason,
        )
