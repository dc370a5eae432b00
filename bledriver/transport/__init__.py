from .base import Advertisement, RadioTransport, normalize_address
from .errors import (
    TransportError,
    TransportConnectError,
    TransportIOError,
    TransportUnsupportedError,
)
from .registry import TransportDriverRegistry

__all__ = ["Advertisement",
           "RadioTransport",
           "normalize_address",
           "TransportError",
           "TransportConnectError",
           "TransportIOError",
           "TransportUnsupportedError",
           "TransportDriverRegistry"]
