# bledriver/runtime/duty_cycle.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from bledriver.protocol.defs import LIVE_MODE_OFF, LIVE_MODE_ON, TELEMETRY_RANGES

from ._internal.commands import CommandIssuer
from .clock import Clock, SystemClock
from .session import Session


class CycleOutcome(str, Enum):
    COMPLETED = "completed"
    LINK_LOST = "link_lost"
    STOPPED = "stopped"


class DutyCycleScheduler:
    """
    Alternates a connected telemetry device between a sample window
    (live mode on) and a sleep window (live mode off, no traffic).

    Per connection:
      1. enable notifications on every telemetry range (once)
      2. LIVE_MODE_ON, hold sample window
      3. LIVE_MODE_OFF, hold sleep window
      4. repeat 2-3 while connected and running

    Command failures are logged and the cycle carries on. A disconnect
    during either window ends the run at once; LIVE_MODE_OFF is not sent
    over a dead link.
    """

    def __init__(
        self,
        commands: CommandIssuer,
        *,
        sample_window_s: float,
        sleep_window_s: float,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._commands = commands
        self.sample_window_s = float(sample_window_s)
        self.sleep_window_s = float(sleep_window_s)
        self._clock = clock or SystemClock()
        self._log = logger or logging.getLogger(__name__)

    def subscribe(self, session: Session) -> int:
        """Enable notifications on all telemetry ranges. Returns how many succeeded."""
        ok = 0
        for kind, rng in TELEMETRY_RANGES:
            if self._commands.subscribe(session.address, f"NOTIFY_{kind.name}", rng.start, rng.end):
                ok += 1
        return ok

    def run(self, session: Session, should_run: Callable[[], bool]) -> CycleOutcome:
        """Subscribe, then cycle until the link drops or should_run() goes false."""
        self._log.info("DUTY_CYCLE_START address=%s", session.address)
        self.subscribe(session)

        cycles = 0
        while True:
            outcome = self.run_cycle(session, should_run)
            if outcome is not CycleOutcome.COMPLETED:
                self._log.info(
                    "DUTY_CYCLE_END address=%s outcome=%s cycles=%d",
                    session.address,
                    outcome.value,
                    cycles,
                )
                return outcome
            cycles += 1

    def run_cycle(self, session: Session, should_run: Callable[[], bool]) -> CycleOutcome:
        # Clear before checking state so a disconnect from here on wakes the waits.
        session.wake_event.clear()
        if not should_run():
            return CycleOutcome.STOPPED
        if not session.is_connected:
            return CycleOutcome.LINK_LOST

        self._commands.send(session.address, "LIVE_MODE_ON", LIVE_MODE_ON)

        woke = self._clock.wait(session.wake_event, self.sample_window_s)
        if not session.is_connected:
            self._log.info("DUTY_CYCLE_ABORTED address=%s phase=sample", session.address)
            return CycleOutcome.LINK_LOST

        self._commands.send(session.address, "LIVE_MODE_OFF", LIVE_MODE_OFF)
        if woke or not should_run():
            return CycleOutcome.STOPPED

        woke = self._clock.wait(session.wake_event, self.sleep_window_s)
        if not session.is_connected:
            self._log.info("DUTY_CYCLE_ABORTED address=%s phase=sleep", session.address)
            return CycleOutcome.LINK_LOST
        if woke:
            return CycleOutcome.STOPPED

        return CycleOutcome.COMPLETED
