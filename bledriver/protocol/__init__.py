# protocol/__init__.py

from .defs import (
    AttributeRange,
    TELEMETRY_RANGES,
    NOTIFY_HANDLES,
    QUANTITY_HANDLES,
    BATTERY_HANDLE,
    LIVE_MODE_ON,
    LIVE_MODE_OFF,
    LOCATOR_ALERT_ON,
    LOCATOR_ALERT_OFF,
    att_write_request,
    parse_att_write_request,
)

__all__ = [
    "AttributeRange",
    "TELEMETRY_RANGES", "NOTIFY_HANDLES", "QUANTITY_HANDLES", "BATTERY_HANDLE",
    "LIVE_MODE_ON", "LIVE_MODE_OFF", "LOCATOR_ALERT_ON", "LOCATOR_ALERT_OFF",
    "att_write_request", "parse_att_write_request"]
