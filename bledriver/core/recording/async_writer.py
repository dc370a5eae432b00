# bledriver/core/recording/async_writer.py
from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from queue import Empty, Queue
from typing import Callable, List, Optional


class AsyncWriter:
    """
    Threaded, batched line writer.

    Lines are appended to `path` by a background thread every
    `flush_interval` seconds (and once more on close()).
    """

    def __init__(
        self,
        path: Path,
        write_func: Optional[Callable[[Path, List[str]], None]] = None,
        flush_interval: float = 0.5,
        *,
        logger: Optional[logging.Logger] = None,
    ):
        self._path = Path(path)
        self._write_func = write_func or append_lines
        self._flush_interval = float(flush_interval)
        self._log = logger or logging.getLogger(__name__)

        self._queue: Queue[str] = Queue()
        self._stop_event = threading.Event()

        self._thread = threading.Thread(target=self._worker, name=f"writer-{self._path.name}", daemon=True)
        self._thread.start()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, line: str) -> None:
        """Queue a line (no-op after close())."""
        if self._stop_event.is_set():
            return
        self._queue.put(line)

    def close(self) -> None:
        """Flush remaining lines and stop the writer thread."""
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        self._thread.join(timeout=None)

    def _worker(self) -> None:
        batch: List[str] = []
        last_flush = time.monotonic()

        while not self._stop_event.is_set() or not self._queue.empty():
            try:
                batch.append(self._queue.get(timeout=0.1))
            except Empty:
                pass

            now = time.monotonic()
            if batch and (now - last_flush >= self._flush_interval or self._stop_event.is_set()):
                self._flush_safe(batch)
                batch.clear()
                last_flush = now

        if batch:
            self._flush_safe(batch)

    def _flush_safe(self, batch: List[str]) -> None:
        # never kill the worker thread; the batch is dropped
        try:
            self._write_func(self._path, batch)
        except Exception:
            self._log.exception("ASYNC_WRITER_FLUSH_FAILED path=%s batch_len=%d", self._path, len(batch))


def append_lines(path: Path, batch: List[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        for line in batch:
            f.write(line + "\n")
