# bledriver/interfaces/publisher.py
from typing import Protocol

from bledriver.model.identity import PeripheralIdentity
from bledriver.model.reading import SensorReading


class Publisher(Protocol):
    """Fire-and-forget outlet for decoded values and locator state."""
    def publish_reading(self, identity: PeripheralIdentity, reading: SensorReading) -> None: ...
    def publish_locator_state(self, identity: PeripheralIdentity, active: bool) -> None: ...
    def close(self) -> None: ...
