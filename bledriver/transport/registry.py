# bledriver/transport/registry.py
from __future__ import annotations

from typing import Dict, Type

from .base import RadioTransport
from .gatttool import GattToolTransport
from .errors import TransportError


class TransportDriverRegistry:
    """
    Maps driver keys -> concrete radio transport classes.

    The radio stack itself lives outside this package; deployments with a
    native stack register their RadioTransport implementation here.
    """

    def __init__(self, drivers: Dict[str, Type[RadioTransport]]):
        # normalize keys to be case-insensitive
        self._drivers: Dict[str, Type[RadioTransport]] = {k.lower(): v for k, v in drivers.items()}

    @classmethod
    def default(cls) -> "TransportDriverRegistry":
        return cls(
            drivers={
                "gatttool": GattToolTransport,
            }
        )

    def register(self, driver: str, transport_cls: Type[RadioTransport]) -> None:
        self._drivers[driver.lower()] = transport_cls

    def has(self, driver: str) -> bool:
        return driver.lower() in self._drivers

    def get_class(self, driver: str) -> Type[RadioTransport]:
        key = driver.lower()
        if key not in self._drivers:
            raise TransportError(f"Transport driver '{driver}' not registered")
        return self._drivers[key]

    def create(self, driver: str, **params) -> RadioTransport:
        transport_cls = self.get_class(driver)
        return transport_cls(**params)
