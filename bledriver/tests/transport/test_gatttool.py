from __future__ import annotations

import subprocess

import pytest

import bledriver.transport.gatttool as gt_mod
from bledriver.model.identity import AddressKind
from bledriver.protocol.defs import LIVE_MODE_ON
from bledriver.transport.errors import (
    TransportConnectError,
    TransportIOError,
    TransportUnsupportedError,
)

CHAR_LINE = (
    "handle = 0x0002, char properties = 0x0a, char value handle = 0x0003, "
    "uuid = 00002a00-0000-1000-8000-00805f9b34fb"
)
READ_HEX = "022d00d0d09e38a534ddb8c04f04685213a78d"


class FakeRun:
    def __init__(self, outputs):
        self.outputs = list(outputs)
        self.cmds = []

    def __call__(self, cmd, **kwargs):
        self.cmds.append(list(cmd))
        out = self.outputs.pop(0) if self.outputs else ""
        if isinstance(out, BaseException):
            raise out
        rc = 0
        if isinstance(out, tuple):
            rc, out = out
        return subprocess.CompletedProcess(cmd, rc, stdout=out)


class Sink:
    def __init__(self):
        self.events = []

    def on_connected(self):
        self.events.append("connected")

    def on_disconnected(self):
        self.events.append("disconnected")

    def on_notification(self, attribute_id, data):
        self.events.append(("notify", attribute_id, data))


def _spaced(hex_str: str) -> str:
    return " ".join(hex_str[i:i + 2] for i in range(0, len(hex_str), 2))


def test_parse_characteristic_line():
    c = gt_mod.parse_characteristic(CHAR_LINE)
    assert c is not None
    assert c.handle == 2
    assert c.properties == 0x0A
    assert c.value_handle == 3
    assert c.uuid == "00002a00-0000-1000-8000-00805f9b34fb"
    assert gt_mod.parse_characteristic("Discover all characteristics") is None


def test_decode_read_value():
    out = f"Characteristic value/descriptor: {_spaced(READ_HEX)} \n"
    value = gt_mod.decode_read_value(out)
    assert len(value) == 19
    assert value.hex() == READ_HEX


def test_decode_read_value_without_value_raises():
    with pytest.raises(TransportIOError):
        gt_mod.decode_read_value("Characteristic Write Request failed")


def test_connect_lists_characteristics_and_reports_link(monkeypatch):
    fake = FakeRun([CHAR_LINE + "\n" + CHAR_LINE.replace("0x0002", "0x0004") + "\n"])
    monkeypatch.setattr(gt_mod.subprocess, "run", fake)

    t = gt_mod.GattToolTransport("/usr/bin/gatttool")
    sink = Sink()
    t.attach("f6:5f:20:4c:b0:db", sink)
    t.connect("f6:5f:20:4c:b0:db", AddressKind.RANDOM)

    assert fake.cmds[0] == [
        "/usr/bin/gatttool", "-b", "F6:5F:20:4C:B0:DB", "-t", "random", "-l", "medium", "--characteristics",
    ]
    assert sink.events == ["connected"]
    assert t.is_connected("F6:5F:20:4C:B0:DB")
    assert len(t.characteristics("F6:5F:20:4C:B0:DB")) == 2

    t.disconnect("F6:5F:20:4C:B0:DB")
    t.disconnect("F6:5F:20:4C:B0:DB")
    assert sink.events == ["connected", "disconnected"]


def test_connection_refused_is_connect_error(monkeypatch):
    monkeypatch.setattr(gt_mod.subprocess, "run", FakeRun(["connect error: Connection refused (111)\n"]))
    t = gt_mod.GattToolTransport()
    sink = Sink()
    t.attach("AA:BB", sink)

    with pytest.raises(TransportConnectError):
        t.connect("AA:BB", AddressKind.PUBLIC)
    assert sink.events == []


def test_send_command_translates_att_write(monkeypatch):
    fake = FakeRun(["", "Characteristic value was written successfully\n"])
    monkeypatch.setattr(gt_mod.subprocess, "run", fake)

    t = gt_mod.GattToolTransport(security_level="low")
    t.connect("AA:BB", AddressKind.PUBLIC)
    t.send_command("AA:BB", LIVE_MODE_ON)

    assert fake.cmds[1][-5:] == ["--char-write-req", "-a", "0x0039", "-n", "01"]
    assert fake.cmds[1][1:7] == ["-b", "AA:BB", "-t", "public", "-l", "low"]


def test_send_command_rejects_non_att_payload(monkeypatch):
    monkeypatch.setattr(gt_mod.subprocess, "run", FakeRun([]))
    with pytest.raises(TransportUnsupportedError):
        gt_mod.GattToolTransport().send_command("AA:BB", b"\x01\x02")


def test_read_attribute(monkeypatch):
    fake = FakeRun(["Characteristic value/descriptor: bc 02 \n"])
    monkeypatch.setattr(gt_mod.subprocess, "run", fake)

    assert gt_mod.GattToolTransport().read_attribute("AA:BB", 49) == b"\xbc\x02"
    assert fake.cmds[0][-3:] == ["--char-read", "-a", "0x0031"]


def test_nonzero_exit_and_timeout_are_io_errors(monkeypatch):
    t = gt_mod.GattToolTransport(timeout_s=1.0)

    monkeypatch.setattr(gt_mod.subprocess, "run", FakeRun([(1, "Device busy\n")]))
    with pytest.raises(TransportIOError, match="exited with 1"):
        t.read_attribute("AA:BB", 49)

    monkeypatch.setattr(gt_mod.subprocess, "run", FakeRun([subprocess.TimeoutExpired("gatttool", 1.0)]))
    with pytest.raises(TransportIOError, match="timed out"):
        t.read_attribute("AA:BB", 49)

    monkeypatch.setattr(gt_mod.subprocess, "run", FakeRun([FileNotFoundError("gatttool")]))
    with pytest.raises(TransportIOError, match="could not be executed"):
        t.read_attribute("AA:BB", 49)


def test_scanning_and_notify_unsupported():
    t = gt_mod.GattToolTransport()
    with pytest.raises(TransportUnsupportedError):
        t.start_scanning()
    with pytest.raises(TransportUnsupportedError):
        t.notify("AA:BB", True, 36, 39)
