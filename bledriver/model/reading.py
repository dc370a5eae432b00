# bledriver/model/reading.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .quantity import QuantityKind


@dataclass(frozen=True)
class SensorReading:
    """
    One decoded notification (or on-demand read).

    raw: little-endian uint16 decoded from raw_bytes
    key: clamped (and for illuminance, floored) table key
    value: calibrated value, 0.0 when the table has no entry for key
    """
    kind: QuantityKind
    raw_bytes: bytes
    raw: int
    key: int
    value: float
    calibrated: bool = True
    attribute_id: Optional[int] = None

    def as_dict(self, *, include_raw: bool = True) -> dict:
        d = {
            "kind": self.kind.value,
            "value": self.value,
            "calibrated": self.calibrated,
        }
        if include_raw:
            d["raw"] = self.raw
            d["key"] = self.key
            d["raw_bytes"] = self.raw_bytes.hex()
        if self.attribute_id is not None:
            d["attribute_id"] = self.attribute_id
        return d
