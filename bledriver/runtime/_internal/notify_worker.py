# bledriver/runtime/_internal/notify_worker.py
from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional, Tuple

NotificationHandler = Callable[[int, bytes], object]


class NotifyWorker(threading.Thread):
    """
    Single consumer for one device's notifications.

    The transport may call submit() from any thread; the handler always runs
    on this thread, one item at a time, in arrival order. stop() drains what
    is already queued before the thread exits.
    """

    def __init__(
        self,
        handler: NotificationHandler,
        *,
        name: Optional[str] = None,
        maxsize: int = 256,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(daemon=True, name=name)
        self._handler = handler
        self._log = logger or logging.getLogger(__name__)
        self._queue: "queue.Queue[Tuple[int, bytes]]" = queue.Queue(maxsize=maxsize)
        self._stop_event = threading.Event()

    def submit(self, attribute_id: int, data: bytes) -> None:
        if self._stop_event.is_set():
            return
        try:
            self._queue.put_nowait((int(attribute_id), bytes(data)))
        except queue.Full:
            self._log.warning("NOTIFY_QUEUE_FULL dropped_handle=%d", attribute_id)

    def run(self) -> None:
        while not self._stop_event.is_set() or not self._queue.empty():
            try:
                attribute_id, data = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                self._handler(attribute_id, data)
            except Exception:
                self._log.exception("NOTIFY_HANDLER_ERROR handle=%d", attribute_id)

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def pending(self) -> int:
        return self._queue.qsize()
