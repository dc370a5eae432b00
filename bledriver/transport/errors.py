# bledriver/transport/errors.py
from __future__ import annotations


class TransportError(Exception):
    """Base class for radio transport failures (connect / command / read)."""


class TransportConnectError(TransportError):
    pass


class TransportIOError(TransportError):
    pass


class TransportUnsupportedError(TransportError):
    """The driver cannot perform this operation at all (e.g. scanning)."""
