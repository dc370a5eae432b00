# bledriver/runtime/state.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from bledriver.model.identity import PeripheralIdentity


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


# Allowed (from, to) pairs. A late connect callback may arrive after the
# attempt was already given up, hence DISCONNECTED -> CONNECTED.
TRANSITIONS = frozenset(
    {
        (ConnectionState.DISCONNECTED, ConnectionState.CONNECTING),
        (ConnectionState.CONNECTING, ConnectionState.CONNECTED),
        (ConnectionState.CONNECTING, ConnectionState.DISCONNECTED),
        (ConnectionState.CONNECTED, ConnectionState.DISCONNECTED),
        (ConnectionState.DISCONNECTED, ConnectionState.CONNECTED),
    }
)


@dataclass(frozen=True)
class SessionStatus:
    """
    A snapshot of one session, safe to share across threads.
    """
    identity: PeripheralIdentity
    state: ConnectionState
    retry_count: int
    connects: int
    last_activity_s: Optional[float] = None
    actuation_in_flight: bool = False
    last_error: Optional[str] = None
