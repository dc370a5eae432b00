# bledriver/interfaces/command_sink.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol


@dataclass(frozen=True)
class CommandEvent:
    """
    Command telemetry event (for tracing/recording/debugging).
    Keep this small + stable; put details into payload.
    """
    name: str                   # e.g. "LIVE_MODE_ON"
    kind: str                   # "sent" | "failed" | "unsupported"
    address: str
    payload: Optional[Mapping[str, Any]] = None
    ts_utc: Optional[str] = None


class CommandSink(Protocol):
    def on_command(self, event: CommandEvent) -> None: ...
    def close(self) -> None: ...
