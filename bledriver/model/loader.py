# bledriver/model/loader.py
from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .calibration import CalibrationPipeline, CalibrationTable
from .quantity import QuantityKind

DEFAULT_CALIBRATION_FILES: Dict[QuantityKind, str] = {
    QuantityKind.ILLUMINANCE: "sunlight.json",
    QuantityKind.MOISTURE: "soil-moisture.json",
    QuantityKind.TEMPERATURE: "temperature.json",
}


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


class CalibrationLoader:
    """
    Loads the per-quantity calibration tables from a directory.

    Each file is a flat mapping of raw code -> calibrated value. The shipped
    tables are JSON with string keys ({"210": 1.5, ...}); since JSON is a
    subset of YAML they are read with yaml.safe_load, and YAML tables work too.

    After calling load_all(), exposes:
        self.tables      : dict[QuantityKind, CalibrationTable]
        self.file_hashes : dict[str, str]  (filename -> sha256)
    """

    def __init__(
        self,
        calibration_dir: str | Path,
        files: Optional[Mapping[QuantityKind, str]] = None,
        *,
        strict: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        self.calibration_dir = Path(calibration_dir)
        self.files: Dict[QuantityKind, str] = dict(DEFAULT_CALIBRATION_FILES)
        if files:
            self.files.update({QuantityKind(k): str(v) for k, v in files.items()})
        self.strict = bool(strict)
        self.tables: Dict[QuantityKind, CalibrationTable] = {}
        self.file_hashes: Dict[str, str] = {}
        self._log = logger or logging.getLogger(__name__)

    # ---------------------------------------------------------------------
    # YAML utility
    # ---------------------------------------------------------------------
    def _load_yaml(self, filename: str) -> dict:
        full_path = self.calibration_dir / filename
        if not full_path.exists():
            raise FileNotFoundError(f"Missing calibration file: {full_path}")

        with open(full_path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    # ---------------------------------------------------------------------
    # Public entry point
    # ---------------------------------------------------------------------
    def load_all(self) -> Dict[QuantityKind, CalibrationTable]:
        """Load every configured table + compute file hashes."""
        self.tables.clear()
        self.file_hashes.clear()

        for kind, filename in self.files.items():
            self.file_hashes[filename] = _sha256_file(self.calibration_dir / filename)
            self.tables[kind] = self._load_table(kind, filename)

        return dict(self.tables)

    def pipeline(self, *, logger: Optional[logging.Logger] = None) -> CalibrationPipeline:
        if not self.tables:
            self.load_all()
        return CalibrationPipeline(self.tables, logger=logger)

    # ---------------------------------------------------------------------
    # Tables
    # ---------------------------------------------------------------------
    def _load_table(self, kind: QuantityKind, filename: str) -> CalibrationTable:
        data = self._load_yaml(filename)
        if not isinstance(data, dict):
            raise ValueError(f"{filename} must contain a mapping of raw code -> value")

        entries: Dict[int, float] = {}
        for raw_key, raw_value in data.items():
            try:
                key = int(raw_key)
            except (TypeError, ValueError):
                raise ValueError(f"{filename}: key {raw_key!r} is not an integer") from None

            if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
                raise ValueError(f"{filename}: value for key {key} must be numeric")

            entries[key] = float(raw_value)

        table = CalibrationTable(kind, entries)

        missing = table.missing_keys()
        if missing:
            if self.strict:
                raise ValueError(
                    f"{filename}: {len(missing)} domain key(s) missing, first={missing[0]}"
                )
            self._log.warning(
                "CALIBRATION_TABLE_INCOMPLETE kind=%s file=%s missing=%d first=%d",
                kind.value,
                filename,
                len(missing),
                missing[0],
            )

        self._log.info("CALIBRATION_TABLE_LOADED kind=%s file=%s entries=%d", kind.value, filename, len(table))
        return table
