# bledriver/core/errors.py
from __future__ import annotations


class BleDriverError(Exception):
    """
    Base class for all expected operational errors in the driver.
    """

    #: Stable machine-readable identifier (for CLI exit mapping, bus replies, etc.)
    code: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration / setup errors (no radio access yet)
# ---------------------------------------------------------------------------

class ConfigError(BleDriverError):
    """
    Driver configuration or calibration data is invalid.

    Examples:
      - unreadable / malformed YAML
      - unknown transport driver key
      - calibration file with non-numeric keys
    """
    code = "config_error"


# ---------------------------------------------------------------------------
# Actuation errors (the only errors surfaced to interactive callers)
# ---------------------------------------------------------------------------

class NotRunningError(BleDriverError):
    """
    Actuation was requested while the driver is stopped.
    """
    code = "not_running"


class AlreadyInProgressError(BleDriverError):
    """
    An activation is already in flight for this device.
    Requests are never queued.
    """
    code = "already_in_progress"


class ConnectionExhaustedError(BleDriverError):
    """
    The bounded connect retries of an actuation request were used up.
    """
    code = "connection_exhausted"


class UnknownDeviceError(BleDriverError):
    """
    A command targeted an address that has never been discovered or configured.
    """
    code = "unknown_device"


# ---------------------------------------------------------------------------
# Data errors (logged, never propagated out of the data path)
# ---------------------------------------------------------------------------

class DecodeError(BleDriverError):
    """
    Notification bytes could not be decoded.

    Examples:
      - payload shorter than a uint16
    """
    code = "decode_error"


class CalibrationDataError(BleDriverError):
    """
    An in-domain raw value has no entry in its calibration table.
    This is a data-quality defect; callers publish a 0.0 sentinel instead.
    """
    code = "calibration_data_error"


class ActuationCommandError(BleDriverError):
    """
    The connected tag rejected (or never received) the alert-on command.
    """
    code = "actuation_command_failed"


class DeviceReadError(BleDriverError):
    """
    An on-demand attribute read failed at the transport.
    """
    code = "device_read_failed"
