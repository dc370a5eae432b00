# bledriver/app/controller.py
from __future__ import annotations

import logging
import threading
from typing import List, Optional

from bledriver.app.config import DriverConfig
from bledriver.core.errors import DeviceReadError, UnknownDeviceError
from bledriver.interfaces import CommandSink, Publisher
from bledriver.model.calibration import CalibrationPipeline
from bledriver.model.identity import AddressKind, DeviceRole, PeripheralIdentity
from bledriver.model.quantity import QuantityKind
from bledriver.model.reading import SensorReading
from bledriver.protocol.defs import LOCATOR_SERVICE_UUID, PLANT_SENSOR_SERVICE_UUID
from bledriver.runtime.actuation import ActuationRequest
from bledriver.runtime.clock import Clock
from bledriver.runtime.registry import DeviceRegistry
from bledriver.runtime.retry import RetryPolicy
from bledriver.runtime.state import SessionStatus
from bledriver.runtime.supervisor import SessionSupervisor
from bledriver.transport.base import Advertisement, RadioTransport, normalize_address
from bledriver.transport.errors import TransportError, TransportUnsupportedError


def classify(adv: Advertisement) -> Optional[DeviceRole]:
    """Role from the advertised service UUIDs, None for unrelated devices."""
    if adv.has_service(PLANT_SENSOR_SERVICE_UUID):
        return DeviceRole.TELEMETRY
    if adv.has_service(LOCATOR_SERVICE_UUID):
        return DeviceRole.LOCATOR
    return None


class DriverController(Publisher):
    """
    App-level controller.

    Owns the run flag, the process-wide device registry and one
    SessionSupervisor per tracked device. Every supervisor publishes through
    this controller, which fans out to the registered sinks.
    """

    def __init__(
        self,
        config: DriverConfig,
        *,
        transport: RadioTransport,
        pipeline: CalibrationPipeline,
        cmd_sink: Optional[CommandSink] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._transport = transport
        self._pipeline = pipeline
        self._cmd_sink = cmd_sink
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)

        self._running = threading.Event()
        self._registry: DeviceRegistry[SessionSupervisor] = DeviceRegistry()
        self._sinks: List[Publisher] = []
        self._sinks_lock = threading.Lock()

    @property
    def config(self) -> DriverConfig:
        return self._config

    @property
    def transport(self) -> RadioTransport:
        return self._transport

    @property
    def registry(self) -> DeviceRegistry[SessionSupervisor]:
        return self._registry

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def add_sink(self, sink: Publisher) -> None:
        with self._sinks_lock:
            if sink not in self._sinks:
                self._sinks.append(sink)

    def remove_sink(self, sink: Publisher) -> None:
        with self._sinks_lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    # ---------------- lifecycle ----------------
    def start(self) -> None:
        if self._running.is_set():
            return
        self._running.set()
        self._log.info("DRIVER_START transport=%s", type(self._transport).__name__)

        try:
            self._transport.on_advertisement = self.handle_advertisement
            self._transport.start()

            for loc in self._config.locators:
                self.track(
                    PeripheralIdentity(
                        address=normalize_address(loc.address),
                        address_kind=loc.address_kind,
                        role=DeviceRole.LOCATOR,
                    )
                )
            for sup in self._registry.values():
                sup.start()

            try:
                self._transport.start_scanning()
            except TransportUnsupportedError as e:
                self._log.info("SCAN_UNSUPPORTED msg=%s", e)
        except Exception:
            try:
                self.stop()
            except Exception:
                self._log.exception("CONTROLLER_STOP_AFTER_START_FAIL")
            raise

    def stop(self) -> None:
        self._running.clear()
        self._log.info("DRIVER_STOP devices=%d", len(self._registry))

        for sup in self._registry.values():
            try:
                sup.stop()
            except Exception:
                self._log.exception("SUPERVISOR_STOP_ERROR address=%s", sup.address)

        self._transport.on_advertisement = None
        try:
            self._transport.stop()
        except Exception:
            self._log.exception("TRANSPORT_STOP_ERROR")

        with self._sinks_lock:
            sinks = list(self._sinks)
            self._sinks.clear()
        for s in sinks:
            try:
                s.close()
            except Exception:
                self._log.exception("SINK_CLOSE_ERROR")

    def __enter__(self) -> "DriverController":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ---------------- discovery ----------------
    def handle_advertisement(self, adv: Advertisement) -> None:
        role = classify(adv)
        if role is None:
            self._log.debug("ADVERTISEMENT_IGNORED address=%s name=%s", adv.address, adv.local_name)
            return
        self.track(
            PeripheralIdentity(
                address=normalize_address(adv.address),
                address_kind=AddressKind.from_public_flag(adv.public_address),
                role=role,
            )
        )

    def track(self, identity: PeripheralIdentity) -> SessionSupervisor:
        """Register a device once; later sightings return the existing supervisor."""
        sup, created = self._registry.register_if_absent(identity, self._new_supervisor)
        if created:
            self._log.info("DEVICE_DISCOVERED %s", identity)
            if self._running.is_set():
                sup.start()
        return sup

    def _new_supervisor(self, identity: PeripheralIdentity) -> SessionSupervisor:
        t = self._config.timing
        return SessionSupervisor(
            identity,
            transport=self._transport,
            pipeline=self._pipeline,
            is_running=self._running.is_set,
            publisher=self,
            cmd_sink=self._cmd_sink,
            sample_window_s=t.sample_window_s,
            sleep_window_s=t.sleep_window_s,
            reconnect_delay_s=t.reconnect_delay_s,
            connect_timeout_s=t.connect_timeout_s,
            actuation_policy=RetryPolicy.bounded(t.actuation_max_attempts, t.actuation_backoff_s),
            activation_hold_s=t.activation_hold_s,
            idle_poll_s=t.idle_poll_s,
            clock=self._clock,
            logger=logging.getLogger(f"bledriver.device.{identity.address}"),
        )

    def supervisor(self, address: str) -> SessionSupervisor:
        sup = self._registry.get(address)
        if sup is None:
            raise UnknownDeviceError(
                f"Device {address} is not tracked.",
                hint="Wait for it to advertise, or list it under 'locators' in the config.",
                details={"address": address},
            )
        return sup

    # ---------------- Publisher (fan-out) ----------------
    def publish_reading(self, identity: PeripheralIdentity, reading: SensorReading) -> None:
        with self._sinks_lock:
            sinks = list(self._sinks)
        for s in sinks:
            try:
                s.publish_reading(identity, reading)
            except Exception:
                self._log.exception("SINK_PUBLISH_READING_ERROR")

    def publish_locator_state(self, identity: PeripheralIdentity, active: bool) -> None:
        with self._sinks_lock:
            sinks = list(self._sinks)
        for s in sinks:
            try:
                s.publish_locator_state(identity, active)
            except Exception:
                self._log.exception("SINK_PUBLISH_LOCATOR_STATE_ERROR")

    def close(self) -> None:
        self.stop()

    # ---------------- commands ----------------
    def activate(self, address: str) -> ActuationRequest:
        sup = self.supervisor(address)
        if sup.identity.role is not DeviceRole.LOCATOR:
            raise UnknownDeviceError(
                f"Device {address} is not a locator tag.",
                details={"address": address, "role": sup.identity.role.value},
            )
        return sup.activate()

    def identify(self, address: str, *, timeout_s: Optional[float] = None) -> ActuationRequest:
        """Start the tag's alert; returns once it is active."""
        req = self.activate(address)
        req.wait_started(timeout=timeout_s)
        return req

    def set_on_off(self, address: str, *, timeout_s: Optional[float] = None) -> ActuationRequest:
        """Full alert cycle; returns after the tag is off again."""
        req = self.activate(address)
        req.wait(timeout=timeout_s)
        return req

    def read_quantity(self, address: str, kind: QuantityKind) -> Optional[SensorReading]:
        sup = self.supervisor(address)
        try:
            reading = sup.read_quantity(kind)
        except TransportError as e:
            raise DeviceReadError(
                f"Reading {QuantityKind(kind).value} from {address} failed.",
                hint=str(e),
                details={"address": address},
            ) from None
        if reading is not None:
            self.publish_reading(sup.identity, reading)
        return reading

    def read_battery_level(self, address: str) -> int:
        sup = self.supervisor(address)
        try:
            return sup.read_battery_level()
        except TransportError as e:
            raise DeviceReadError(
                f"Reading battery level from {address} failed.",
                hint=str(e),
                details={"address": address},
            ) from None

    def status(self) -> List[SessionStatus]:
        return [sup.status() for sup in self._registry.values()]
