# bledriver/protocol/defs.py
"""
Attribute handles, notification ranges, and raw command payloads.

Command payloads are raw ATT Write Requests: opcode 0x12, little-endian
value handle, then the value bytes. They are written to the device as-is.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Dict, Tuple

from bledriver.model.quantity import QuantityKind

# ---------------------------------------------------------------------------
# Advertised service UUIDs (role classification)
# ---------------------------------------------------------------------------
PLANT_SENSOR_SERVICE_UUID = "39e1fa0084a811e2afba0002a5d5c51b"
PLANT_SENSOR_LIVE_MODE_UUID = "39e1fa0684a811e2afba0002a5d5c51b"
LOCATOR_SERVICE_UUID = "cd54cc79ce6c4cf49747447e0fbe6295"

# ---------------------------------------------------------------------------
# Value handles
# ---------------------------------------------------------------------------
ILLUMINANCE_HANDLE = 37
TEMPERATURE_HANDLE = 49
MOISTURE_HANDLE = 53
BATTERY_HANDLE = 68

LIVE_MODE_HANDLE = 0x39
LOCATOR_ALERT_HANDLE = 0x1B


@dataclass(frozen=True)
class AttributeRange:
    start: int
    end: int

    def __post_init__(self) -> None:
        if not (0 <= self.start <= self.end <= 0xFFFF):
            raise ValueError(f"Invalid attribute range {self.start}..{self.end}")

    def __contains__(self, handle: object) -> bool:
        return isinstance(handle, int) and self.start <= handle <= self.end


# Subscription ranges, enabled once per connection (order matches the device docs).
TELEMETRY_RANGES: Tuple[Tuple[QuantityKind, AttributeRange], ...] = (
    (QuantityKind.ILLUMINANCE, AttributeRange(36, 39)),
    (QuantityKind.MOISTURE, AttributeRange(52, 55)),
    (QuantityKind.TEMPERATURE, AttributeRange(48, 51)),
)

# Notification handle -> quantity.
NOTIFY_HANDLES: Dict[int, QuantityKind] = {
    ILLUMINANCE_HANDLE: QuantityKind.ILLUMINANCE,
    TEMPERATURE_HANDLE: QuantityKind.TEMPERATURE,
    MOISTURE_HANDLE: QuantityKind.MOISTURE,
}

QUANTITY_HANDLES: Dict[QuantityKind, int] = {k: h for h, k in NOTIFY_HANDLES.items()}

# ---------------------------------------------------------------------------
# Raw ATT commands
# ---------------------------------------------------------------------------
ATT_WRITE_REQUEST = 0x12


def att_write_request(handle: int, value: bytes) -> bytes:
    if not (0 <= int(handle) <= 0xFFFF):
        raise ValueError(f"Handle out of range: {handle}")
    return struct.pack("<BH", ATT_WRITE_REQUEST, int(handle)) + bytes(value)


def parse_att_write_request(payload: bytes) -> Tuple[int, bytes]:
    """Inverse of att_write_request(): returns (handle, value)."""
    if len(payload) < 3:
        raise ValueError(f"ATT write request too short ({len(payload)} bytes)")
    opcode, handle = struct.unpack("<BH", bytes(payload[:3]))
    if opcode != ATT_WRITE_REQUEST:
        raise ValueError(f"Not an ATT write request (opcode=0x{opcode:02x})")
    return handle, bytes(payload[3:])


LIVE_MODE_ON = att_write_request(LIVE_MODE_HANDLE, b"\x01")     # 12 39 00 01
LIVE_MODE_OFF = att_write_request(LIVE_MODE_HANDLE, b"\x00")    # 12 39 00 00
LOCATOR_ALERT_ON = att_write_request(LOCATOR_ALERT_HANDLE, b"\x02")   # 12 1b 00 02
LOCATOR_ALERT_OFF = att_write_request(LOCATOR_ALERT_HANDLE, b"\x00")  # 12 1b 00 00
