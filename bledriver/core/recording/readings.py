# bledriver/core/recording/readings.py
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Optional

from bledriver.core.recording.async_writer import AsyncWriter
from bledriver.model.identity import PeripheralIdentity
from bledriver.model.reading import SensorReading


def _utc_compact_ts() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


class ReadingRecorder:
    """
    Publisher that appends every reading and locator state change to one
    JSON-lines file per run: base_dir/readings_<start_ts>.jsonl
    """

    def __init__(
        self,
        base_dir: Path,
        *,
        flush_interval_s: float = 0.5,
        logger: Optional[logging.Logger] = None,
    ):
        self._lock = Lock()
        self._path = Path(base_dir) / f"readings_{_utc_compact_ts()}.jsonl"
        self._writer: Optional[AsyncWriter] = AsyncWriter(
            path=self._path,
            flush_interval=flush_interval_s,
            logger=logger,
        )

    @property
    def path(self) -> Path:
        return self._path

    def publish_reading(self, identity: PeripheralIdentity, reading: SensorReading) -> None:
        row = {"ts_utc": datetime.now(timezone.utc).isoformat(), "address": identity.address}
        row.update(reading.as_dict())
        self._write(row)

    def publish_locator_state(self, identity: PeripheralIdentity, active: bool) -> None:
        self._write(
            {
                "ts_utc": datetime.now(timezone.utc).isoformat(),
                "address": identity.address,
                "locator_active": bool(active),
            }
        )

    def close(self) -> None:
        with self._lock:
            writer, self._writer = self._writer, None
        if writer is not None:
            writer.close()

    def _write(self, row: dict) -> None:
        with self._lock:
            writer = self._writer
        if writer is None:
            return
        writer.write(json.dumps(row, ensure_ascii=False))
