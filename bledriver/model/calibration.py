# bledriver/model/calibration.py
from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional

from bledriver.core.errors import CalibrationDataError

from .quantity import QuantityKind, domain_for
from .reading import SensorReading

#: Published in place of a calibrated value when the table has no entry.
UNCALIBRATED_VALUE = 0.0


class CalibrationTable(Mapping[int, float]):
    """
    Read-only raw-code -> physical-value map for one quantity.
    """

    def __init__(self, kind: QuantityKind, entries: Mapping[int, float]):
        self.kind = QuantityKind(kind)
        self._entries: Mapping[int, float] = MappingProxyType(
            {int(k): float(v) for k, v in entries.items()}
        )

    def __getitem__(self, key: int) -> float:
        return self._entries[key]

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, key: int) -> float:
        try:
            return self._entries[int(key)]
        except KeyError:
            raise CalibrationDataError(
                f"No {self.kind.value} calibration entry for key {key}.",
                hint="The calibration table must cover every key of the quantity's domain.",
                details={"kind": self.kind.value, "key": int(key)},
            ) from None

    def missing_keys(self) -> List[int]:
        """Domain keys this table does not cover."""
        return [k for k in domain_for(self.kind).keys() if k not in self._entries]

    def __repr__(self) -> str:
        return f"CalibrationTable(kind='{self.kind.value}', entries={len(self)})"


class CalibrationPipeline:
    """
    Pure raw -> calibrated conversion.

    calibrate(kind, raw):
      1. clamp raw into the quantity's domain (illuminance is also floored to 10)
      2. exact-key lookup in the quantity's table
      3. missing key -> CalibrationDataError, logged, 0.0 returned

    The same (kind, raw) pair always yields the same value.
    """

    def __init__(
        self,
        tables: Mapping[QuantityKind, CalibrationTable],
        *,
        logger: Optional[logging.Logger] = None,
    ):
        self._tables: Dict[QuantityKind, CalibrationTable] = {
            QuantityKind(k): t for k, t in tables.items()
        }
        self._log = logger or logging.getLogger(__name__)

    @property
    def kinds(self) -> List[QuantityKind]:
        return list(self._tables.keys())

    def table(self, kind: QuantityKind) -> Optional[CalibrationTable]:
        return self._tables.get(QuantityKind(kind))

    def table_key(self, kind: QuantityKind, raw: int) -> int:
        return domain_for(kind).table_key(raw)

    def lookup(self, kind: QuantityKind, raw: int) -> float:
        """Strict variant: raises CalibrationDataError instead of returning the sentinel."""
        kind = QuantityKind(kind)
        key = self.table_key(kind, raw)
        table = self._tables.get(kind)
        if table is None:
            raise CalibrationDataError(
                f"No calibration table loaded for {kind.value}.",
                details={"kind": kind.value, "key": key},
            )
        return table.lookup(key)

    def calibrate(self, kind: QuantityKind, raw: int) -> float:
        try:
            return self.lookup(kind, raw)
        except CalibrationDataError as e:
            self._log_missing(kind, raw, e)
            return UNCALIBRATED_VALUE

    def reading(
        self,
        kind: QuantityKind,
        raw_bytes: bytes,
        raw: int,
        *,
        attribute_id: Optional[int] = None,
    ) -> SensorReading:
        kind = QuantityKind(kind)
        key = self.table_key(kind, raw)
        try:
            value = self.lookup(kind, raw)
            calibrated = True
        except CalibrationDataError as e:
            self._log_missing(kind, raw, e)
            value = UNCALIBRATED_VALUE
            calibrated = False

        return SensorReading(
            kind=kind,
            raw_bytes=bytes(raw_bytes),
            raw=int(raw),
            key=key,
            value=value,
            calibrated=calibrated,
            attribute_id=attribute_id,
        )

    def _log_missing(self, kind: QuantityKind, raw: int, err: CalibrationDataError) -> None:
        self._log.warning(
            "CALIBRATION_KEY_MISSING kind=%s raw=%d key=%s msg=%s",
            QuantityKind(kind).value,
            int(raw),
            err.details.get("key"),
            err.message,
        )
