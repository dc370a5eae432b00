from __future__ import annotations

import threading
from typing import Callable, Dict, List, Optional

import pytest

from bledriver.model.calibration import CalibrationPipeline, CalibrationTable
from bledriver.model.identity import AddressKind, DeviceRole, PeripheralIdentity
from bledriver.model.quantity import QuantityKind, domain_for
from bledriver.transport.base import RadioTransport, normalize_address
from bledriver.transport.errors import TransportConnectError, TransportIOError


SENSOR_ADDR = "A0:14:3D:00:00:01"
TAG_ADDR = "C4:7C:8D:00:00:02"


class FakeClock:
    """
    Scripted clock: nothing blocks, time only moves when waited on.

    on_wait(event, timeout_s) runs inside every wait() before the result is
    computed, so a test can fire callbacks "during" a window.
    """

    def __init__(self):
        self.now = 0.0
        self.waits: List[float] = []
        self.sleeps: List[float] = []
        self.on_wait: Optional[Callable[[threading.Event, float], None]] = None
        self.on_sleep: Optional[Callable[[float], None]] = None

    def monotonic(self) -> float:
        return self.now

    def wait(self, event: threading.Event, timeout_s: float) -> bool:
        self.waits.append(float(timeout_s))
        if self.on_wait is not None:
            self.on_wait(event, timeout_s)
        if event.is_set():
            return True
        self.now += float(timeout_s)
        return False

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(float(seconds))
        if self.on_sleep is not None:
            self.on_sleep(seconds)
        self.now += float(seconds)


class FakeTransport(RadioTransport):
    """
    In-memory radio.

    connect_results: consumed per connect() call
      "ok"     -> on_connected() fires before connect() returns
      "fail"   -> TransportConnectError
      "silent" -> nothing happens (connect timeout)
    When the list is empty, "ok" is assumed.
    """

    def __init__(self):
        super().__init__()
        self.calls: List[tuple] = []
        self.connect_results: List[str] = []
        self.failing_payloads: set = set()
        self.read_values: Dict[int, bytes] = {}
        self.on_send: Optional[Callable[[str, bytes], None]] = None
        self._lock = threading.Lock()

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def calls_named(self, name: str) -> List[tuple]:
        with self._lock:
            return [c for c in self.calls if c[0] == name]

    def sent_payloads(self) -> List[bytes]:
        return [c[2] for c in self.calls_named("send")]

    def connect(self, address: str, address_kind: AddressKind) -> None:
        self._record("connect", normalize_address(address), AddressKind(address_kind))
        with self._lock:
            result = self.connect_results.pop(0) if self.connect_results else "ok"
        if result == "fail":
            raise TransportConnectError("out of range")
        if result == "ok":
            self._emit_connected(address)

    def disconnect(self, address: str) -> None:
        self._record("disconnect", normalize_address(address))
        self._emit_disconnected(address)

    def notify(self, address, enable, start_handle, end_handle, *, indicate=True, ack=False) -> None:
        self._record("notify", normalize_address(address), enable, start_handle, end_handle, indicate, ack)

    def send_command(self, address: str, payload: bytes) -> None:
        self._record("send", normalize_address(address), bytes(payload))
        if bytes(payload) in self.failing_payloads:
            raise TransportIOError("write failed")
        if self.on_send is not None:
            self.on_send(address, bytes(payload))

    def read_attribute(self, address: str, attribute_id: int) -> bytes:
        self._record("read", normalize_address(address), int(attribute_id))
        if int(attribute_id) not in self.read_values:
            raise TransportIOError(f"no value for handle {attribute_id}")
        return self.read_values[int(attribute_id)]

    # test helpers
    def deliver(self, address: str, attribute_id: int, data: bytes) -> None:
        self._emit_notification(address, attribute_id, data)

    def drop(self, address: str) -> None:
        self._emit_disconnected(address)


class FakePublisher:
    def __init__(self):
        self.readings: list = []
        self.locator_states: list = []
        self.closed = False
        self._lock = threading.Lock()

    def publish_reading(self, identity, reading) -> None:
        with self._lock:
            self.readings.append((identity, reading))

    def publish_locator_state(self, identity, active) -> None:
        with self._lock:
            self.locator_states.append((identity, active))

    def close(self) -> None:
        self.closed = True


class FakeCommandSink:
    def __init__(self):
        self.events: list = []

    def on_command(self, event) -> None:
        self.events.append(event)

    def close(self) -> None:
        return None


def table_value(kind: QuantityKind, key: int) -> float:
    """Deterministic calibration entry used by the test tables."""
    scale = {
        QuantityKind.ILLUMINANCE: 0.01,
        QuantityKind.MOISTURE: 0.1,
        QuantityKind.TEMPERATURE: 0.05,
    }[QuantityKind(kind)]
    return round(key * scale, 3)


def full_entries(kind: QuantityKind) -> Dict[int, float]:
    return {k: table_value(kind, k) for k in domain_for(kind).keys()}


def make_pipeline(missing: Optional[Dict[QuantityKind, List[int]]] = None) -> CalibrationPipeline:
    tables = {}
    for kind in QuantityKind:
        entries = full_entries(kind)
        for k in (missing or {}).get(kind, []):
            entries.pop(k, None)
        tables[kind] = CalibrationTable(kind, entries)
    return CalibrationPipeline(tables)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture
def cmd_sink() -> FakeCommandSink:
    return FakeCommandSink()


@pytest.fixture
def pipeline() -> CalibrationPipeline:
    return make_pipeline()


@pytest.fixture
def sensor_identity() -> PeripheralIdentity:
    return PeripheralIdentity(SENSOR_ADDR, AddressKind.PUBLIC, DeviceRole.TELEMETRY)


@pytest.fixture
def tag_identity() -> PeripheralIdentity:
    return PeripheralIdentity(TAG_ADDR, AddressKind.RANDOM, DeviceRole.LOCATOR)


@pytest.fixture
def pipeline_factory() -> Callable[..., CalibrationPipeline]:
    return make_pipeline


@pytest.fixture
def expected_value() -> Callable[[QuantityKind, int], float]:
    return table_value


@pytest.fixture
def entries_for() -> Callable[[QuantityKind], Dict[int, float]]:
    return full_entries
