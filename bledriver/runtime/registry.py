# bledriver/runtime/registry.py
from __future__ import annotations

import threading
from typing import Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from bledriver.model.identity import PeripheralIdentity
from bledriver.transport.base import normalize_address

T = TypeVar("T")


class DeviceRegistry(Generic[T]):
    """
    Process-wide "seen once, tracked forever" map, keyed by device address.

    register_if_absent() is the only way in: the factory runs under the lock
    at most once per address, so a device never gets two trackers. Entries
    are never removed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: Dict[str, Tuple[PeripheralIdentity, T]] = {}

    def register_if_absent(
        self,
        identity: PeripheralIdentity,
        factory: Callable[[PeripheralIdentity], T],
    ) -> Tuple[T, bool]:
        """Return (tracker, created)."""
        key = normalize_address(identity.address)
        with self._lock:
            existing = self._items.get(key)
            if existing is not None:
                return existing[1], False
            obj = factory(identity)
            self._items[key] = (identity, obj)
            return obj, True

    def get(self, address: str) -> Optional[T]:
        with self._lock:
            item = self._items.get(normalize_address(address))
        return item[1] if item is not None else None

    def identity(self, address: str) -> Optional[PeripheralIdentity]:
        with self._lock:
            item = self._items.get(normalize_address(address))
        return item[0] if item is not None else None

    def values(self) -> List[T]:
        with self._lock:
            return [obj for _, obj in self._items.values()]

    def identities(self) -> List[PeripheralIdentity]:
        with self._lock:
            return [ident for ident, _ in self._items.values()]

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, str):
            return False
        with self._lock:
            return normalize_address(address) in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
