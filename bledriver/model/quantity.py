# bledriver/model/quantity.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class QuantityKind(str, Enum):
    ILLUMINANCE = "illuminance"
    MOISTURE = "moisture"
    TEMPERATURE = "temperature"


@dataclass(frozen=True)
class QuantityDomain:
    """
    Fixed raw-value domain of one physical quantity.

    step > 1 floors the clamped value to a multiple of step before lookup
    (the backing table only carries every step-th key).
    """
    minimum: int
    maximum: int
    step: int = 1

    def __post_init__(self) -> None:
        if self.minimum > self.maximum:
            raise ValueError(f"Invalid domain [{self.minimum}, {self.maximum}]")
        if self.step < 1:
            raise ValueError(f"Invalid domain step {self.step}")

    def clamp(self, raw: int) -> int:
        return max(self.minimum, min(self.maximum, int(raw)))

    def table_key(self, raw: int) -> int:
        clamped = self.clamp(raw)
        if self.step == 1:
            return clamped
        return (clamped // self.step) * self.step

    def keys(self) -> range:
        """All keys a total table for this domain must contain."""
        first = (self.minimum + self.step - 1) // self.step * self.step
        return range(first, self.maximum + 1, self.step)


# Illuminance is on a different scale and sampled every 10th code; keep as-is.
DOMAINS: Dict[QuantityKind, QuantityDomain] = {
    QuantityKind.ILLUMINANCE: QuantityDomain(minimum=0, maximum=65530, step=10),
    QuantityKind.MOISTURE: QuantityDomain(minimum=210, maximum=700),
    QuantityKind.TEMPERATURE: QuantityDomain(minimum=210, maximum=1372),
}


def domain_for(kind: QuantityKind) -> QuantityDomain:
    return DOMAINS[QuantityKind(kind)]
