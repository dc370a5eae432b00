# bledriver/interfaces/event_sink.py
from __future__ import annotations

from typing import Protocol


class DeviceEventSink(Protocol):
    """
    Per-device receiver of transport callbacks.

    The transport calls these from its own thread(s); implementations must
    not block.
    """
    def on_connected(self) -> None: ...
    def on_disconnected(self) -> None: ...
    def on_notification(self, attribute_id: int, data: bytes) -> None: ...
