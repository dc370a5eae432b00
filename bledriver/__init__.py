"""Duty-cycled BLE sensor and locator tag driver."""

__version__ = "0.3.0"
