# bledriver/transport/base.py
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from bledriver.interfaces.event_sink import DeviceEventSink
from bledriver.model.identity import AddressKind

from .errors import TransportUnsupportedError


def normalize_address(address: str) -> str:
    return str(address).strip().upper()


def normalize_uuid(uuid: str) -> str:
    return str(uuid).replace("-", "").strip().lower()


@dataclass(frozen=True)
class Advertisement:
    """One advertisement sighting as reported by the scanner."""
    address: str
    public_address: bool
    local_name: str = ""
    service_uuids: Tuple[str, ...] = ()
    rssi: Optional[int] = None

    def has_service(self, uuid: str) -> bool:
        want = normalize_uuid(uuid)
        return any(normalize_uuid(u) == want for u in self.service_uuids)


AdvertisementCallback = Callable[[Advertisement], None]


class RadioTransport(ABC):
    """
    Abstract radio transport (the shared transceiver handle).

    Contract:
      - connect() only initiates a link; success is reported later through
        the attached sink's on_connected(). A raised TransportError means the
        attempt failed outright.
      - notify() subscribes/unsubscribes a range of attribute handles.
      - send_command() writes a short opaque payload (raw ATT write request).
      - read_attribute() blocks until the value arrives or the driver times out.
      - Callbacks are routed per address to the sink registered with attach();
        advertisements go to on_advertisement.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None):
        self._log = logger or logging.getLogger(__name__)
        self._sinks: Dict[str, DeviceEventSink] = {}
        self._sinks_lock = threading.Lock()
        self.on_advertisement: Optional[AdvertisementCallback] = None

    # ---------------- lifecycle ----------------
    def start(self) -> None:
        return None

    def stop(self) -> None:
        return None

    def start_scanning(self) -> None:
        raise TransportUnsupportedError(f"{type(self).__name__} cannot scan")

    # ---------------- radio operations ----------------
    @abstractmethod
    def connect(self, address: str, address_kind: AddressKind) -> None: ...

    @abstractmethod
    def disconnect(self, address: str) -> None: ...

    @abstractmethod
    def notify(
        self,
        address: str,
        enable: bool,
        start_handle: int,
        end_handle: int,
        *,
        indicate: bool = True,
        ack: bool = False,
    ) -> None: ...

    @abstractmethod
    def send_command(self, address: str, payload: bytes) -> None: ...

    @abstractmethod
    def read_attribute(self, address: str, attribute_id: int) -> bytes: ...

    # ---------------- callback registration ----------------
    def attach(self, address: str, sink: DeviceEventSink) -> None:
        with self._sinks_lock:
            self._sinks[normalize_address(address)] = sink

    def detach(self, address: str) -> None:
        with self._sinks_lock:
            self._sinks.pop(normalize_address(address), None)

    def sink_for(self, address: str) -> Optional[DeviceEventSink]:
        with self._sinks_lock:
            return self._sinks.get(normalize_address(address))

    # ---------------- dispatch helpers (for implementations) ----------------
    def _emit_connected(self, address: str) -> None:
        sink = self.sink_for(address)
        if sink is None:
            return
        try:
            sink.on_connected()
        except Exception:
            self._log.exception("SINK_ON_CONNECTED_ERROR address=%s", address)

    def _emit_disconnected(self, address: str) -> None:
        sink = self.sink_for(address)
        if sink is None:
            return
        try:
            sink.on_disconnected()
        except Exception:
            self._log.exception("SINK_ON_DISCONNECTED_ERROR address=%s", address)

    def _emit_notification(self, address: str, attribute_id: int, data: bytes) -> None:
        sink = self.sink_for(address)
        if sink is None:
            self._log.debug("NOTIFICATION_UNROUTED address=%s handle=%d", address, attribute_id)
            return
        try:
            sink.on_notification(int(attribute_id), bytes(data))
        except Exception:
            self._log.exception("SINK_ON_NOTIFICATION_ERROR address=%s", address)

    def _emit_advertisement(self, adv: Advertisement) -> None:
        cb = self.on_advertisement
        if cb is None:
            return
        try:
            cb(adv)
        except Exception:
            self._log.exception("ADVERTISEMENT_CALLBACK_ERROR address=%s", adv.address)
