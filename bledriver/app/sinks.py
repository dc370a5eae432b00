# bledriver/app/sinks.py
from __future__ import annotations

import logging
from typing import Optional

from bledriver.interfaces.publisher import Publisher
from bledriver.model.identity import PeripheralIdentity
from bledriver.model.reading import SensorReading


class LoggingPublisher(Publisher):
    """Publishes readings and locator state as log records."""

    def __init__(self, *, logger: Optional[logging.Logger] = None):
        self._log = logger or logging.getLogger("readings")

    def publish_reading(self, identity: PeripheralIdentity, reading: SensorReading) -> None:
        self._log.info(
            "READING address=%s kind=%s raw=%d value=%s calibrated=%s",
            identity.address,
            reading.kind.value,
            reading.raw,
            reading.value,
            reading.calibrated,
        )

    def publish_locator_state(self, identity: PeripheralIdentity, active: bool) -> None:
        self._log.info("LOCATOR_STATE address=%s active=%s", identity.address, active)

    def close(self) -> None:
        return None


class PrintPublisher(Publisher):
    """Print readings to stdout."""

    def __init__(self, *, include_raw: bool = False):
        self._include_raw = include_raw

    def publish_reading(self, identity: PeripheralIdentity, reading: SensorReading) -> None:
        print(f"READING {identity.address} -> {reading.as_dict(include_raw=self._include_raw)}")

    def publish_locator_state(self, identity: PeripheralIdentity, active: bool) -> None:
        print(f"LOCATOR {identity.address} -> {'on' if active else 'off'}")

    def close(self) -> None:
        return None
