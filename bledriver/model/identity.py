# bledriver/model/identity.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AddressKind(str, Enum):
    PUBLIC = "public"
    RANDOM = "random"

    @classmethod
    def from_public_flag(cls, public: bool) -> "AddressKind":
        return cls.PUBLIC if public else cls.RANDOM


class DeviceRole(str, Enum):
    TELEMETRY = "telemetry-sensor"
    LOCATOR = "locator-tag"


@dataclass(frozen=True)
class PeripheralIdentity:
    """
    Immutable identity of a tracked peripheral.

    Created on first sighting (advertisement or static configuration) and used
    as the dedup key for the whole process lifetime.
    """
    address: str
    address_kind: AddressKind
    role: DeviceRole

    @property
    def is_public(self) -> bool:
        return self.address_kind is AddressKind.PUBLIC

    @property
    def is_telemetry(self) -> bool:
        return self.role is DeviceRole.TELEMETRY

    def __str__(self) -> str:
        return f"{self.address}({self.address_kind.value},{self.role.value})"
