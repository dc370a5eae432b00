from __future__ import annotations

import logging
import time

from bledriver.runtime._internal.notify_worker import NotifyWorker


def test_worker_preserves_arrival_order_and_drains_on_stop():
    seen = []
    w = NotifyWorker(lambda h, d: seen.append((h, d)))
    w.start()

    for i in range(50):
        w.submit(49, bytes([i, 0]))
    w.stop()
    w.join(timeout=2.0)

    assert not w.is_alive()
    assert [d[0] for _, d in seen] == list(range(50))


def test_worker_survives_handler_errors(caplog):
    calls = []

    def handler(h, d):
        calls.append(h)
        if h == 1:
            raise RuntimeError("boom")

    w = NotifyWorker(handler)
    w.start()
    with caplog.at_level(logging.ERROR):
        w.submit(1, b"")
        w.submit(2, b"")
        deadline = time.time() + 1.0
        while len(calls) < 2 and time.time() < deadline:
            time.sleep(0.005)
        w.stop()
        w.join(timeout=1.0)

    assert calls == [1, 2]
    assert any("NOTIFY_HANDLER_ERROR" in r.getMessage() for r in caplog.records)


def test_full_queue_drops_with_warning(caplog):
    w = NotifyWorker(lambda h, d: None, maxsize=1)
    with caplog.at_level(logging.WARNING):
        w.submit(1, b"")
        w.submit(2, b"")
    assert w.pending == 1
    assert any("NOTIFY_QUEUE_FULL" in r.getMessage() for r in caplog.records)


def test_submit_after_stop_is_ignored():
    w = NotifyWorker(lambda h, d: None)
    w.stop()
    w.submit(1, b"")
    assert w.pending == 0
