# bledriver/runtime/clock.py
from __future__ import annotations

import threading
import time
from typing import Protocol


class Clock(Protocol):
    """
    Time source for every suspension point of the state machines.

    wait() returns True if `event` was set before the timeout expired.
    Tests inject a scripted clock so no real time passes.
    """
    def monotonic(self) -> float: ...
    def wait(self, event: threading.Event, timeout_s: float) -> bool: ...
    def sleep(self, seconds: float) -> None: ...


class SystemClock:
    def monotonic(self) -> float:
        return time.monotonic()

    def wait(self, event: threading.Event, timeout_s: float) -> bool:
        return event.wait(timeout=max(0.0, float(timeout_s)))

    def sleep(self, seconds: float) -> None:
        time.sleep(max(0.0, float(seconds)))
