# bledriver/transport/gatttool.py
from __future__ import annotations

import logging
import re
import subprocess
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from bledriver.model.identity import AddressKind
from bledriver.protocol.defs import parse_att_write_request

from .base import RadioTransport, normalize_address
from .errors import (
    TransportConnectError,
    TransportError,
    TransportIOError,
    TransportUnsupportedError,
)

# gatttool -b F6:5F:20:4C:B0:DB -t random -l medium --char-write-req -a 0x001b -n 02
DEFAULT_GATTTOOL_PATH = "/usr/bin/gatttool"

CHAR_REGEX = re.compile(
    r"handle = (?P<handle>0x[0-9a-f]+), char properties = (?P<char_props>0x[0-9a-f]+), "
    r"char value handle = (?P<char_value_handle>0x[0-9a-f]+), uuid = (?P<uuid>[0-9a-f-]+)"
)
READ_REGEX = re.compile(r"Characteristic value/descriptor: ([0-9a-f ]+)")


@dataclass(frozen=True)
class Characteristic:
    """Attributes needed to address a characteristic."""
    uuid: str
    handle: int             # declaration handle
    properties: int
    value_handle: int       # read/write this one


def parse_characteristic(line: str) -> Optional[Characteristic]:
    m = CHAR_REGEX.search(line)
    if m is None:
        return None
    return Characteristic(
        uuid=m.group("uuid"),
        handle=int(m.group("handle"), 16),
        properties=int(m.group("char_props"), 16),
        value_handle=int(m.group("char_value_handle"), 16),
    )


def decode_read_value(output: str) -> bytes:
    m = READ_REGEX.search(output)
    if m is None:
        raise TransportIOError(f"No characteristic value in gatttool output: {output.strip()!r}")
    return bytes.fromhex(m.group(1).replace(" ", ""))


class GattToolTransport(RadioTransport):
    """
    Transport that shells out to bluez' gatttool for every operation.

    gatttool is connectionless from our side: connect() runs a characteristic
    discovery to prove the device is reachable and then reports the link as
    up. Scanning and notifications are not available through it, which makes
    it a fit for locator tags (write-only) and one-shot reads.
    """

    def __init__(
        self,
        gatttool_path: str = DEFAULT_GATTTOOL_PATH,
        *,
        security_level: str = "medium",
        timeout_s: float = 10.0,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(logger=logger)
        self.gatttool_path = str(gatttool_path)
        self.security_level = str(security_level)
        self.timeout_s = float(timeout_s)

        self._lock = threading.Lock()
        self._kinds: Dict[str, AddressKind] = {}
        self._connected: Dict[str, bool] = {}
        self._chars: Dict[str, List[Characteristic]] = {}

    # ---------------- radio operations ----------------
    def connect(self, address: str, address_kind: AddressKind) -> None:
        addr = normalize_address(address)
        with self._lock:
            self._kinds[addr] = AddressKind(address_kind)

        try:
            chars = self.read_characteristics(addr)
        except TransportError as e:
            raise TransportConnectError(f"connect {addr} failed: {e}") from None

        with self._lock:
            self._chars[addr] = chars
            self._connected[addr] = True

        self._log.info("GATTTOOL_CONNECTED address=%s characteristics=%d", addr, len(chars))
        self._emit_connected(addr)

    def disconnect(self, address: str) -> None:
        addr = normalize_address(address)
        with self._lock:
            was_connected = self._connected.pop(addr, False)
        if was_connected:
            self._emit_disconnected(addr)

    def notify(
        self,
        address: str,
        enable: bool,
        start_handle: int,
        end_handle: int,
        *,
        indicate: bool = True,
        ack: bool = False,
    ) -> None:
        raise TransportUnsupportedError("gatttool driver cannot subscribe to notifications")

    def send_command(self, address: str, payload: bytes) -> None:
        addr = normalize_address(address)
        try:
            handle, value = parse_att_write_request(payload)
        except ValueError as e:
            raise TransportUnsupportedError(f"gatttool driver only sends ATT write requests: {e}") from None

        self._run_for(addr, "--char-write-req", "-a", f"0x{handle:04x}", "-n", value.hex())

    def read_attribute(self, address: str, attribute_id: int) -> bytes:
        addr = normalize_address(address)
        out = self._run_for(addr, "--char-read", "-a", f"0x{int(attribute_id):04x}")
        return decode_read_value(out)

    # ---------------- discovery ----------------
    def read_characteristics(self, address: str) -> List[Characteristic]:
        addr = normalize_address(address)
        out = self._run_for(addr, "--characteristics")

        chars: List[Characteristic] = []
        for line in out.splitlines():
            c = parse_characteristic(line)
            if c is not None:
                chars.append(c)
                self._log.debug("GATTTOOL_CHARACTERISTIC address=%s %s", addr, c)
        return chars

    def characteristics(self, address: str) -> List[Characteristic]:
        with self._lock:
            return list(self._chars.get(normalize_address(address), []))

    def is_connected(self, address: str) -> bool:
        with self._lock:
            return self._connected.get(normalize_address(address), False)

    # ---------------- process plumbing ----------------
    def _run_for(self, address: str, *params: str) -> str:
        with self._lock:
            kind = self._kinds.get(address, AddressKind.RANDOM)
        return self._run(
            "-b", address,
            "-t", kind.value,
            "-l", self.security_level,
            *params,
        )

    def _run(self, *params: str) -> str:
        cmd = [self.gatttool_path, *params]
        self._log.info("GATTTOOL_EXEC args=%s", list(params))

        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired:
            raise TransportIOError(f"gatttool timed out after {self.timeout_s}s") from None
        except OSError as e:
            raise TransportIOError(f"gatttool could not be executed: {e}") from None

        out = proc.stdout or ""
        self._log.debug("GATTTOOL_OUTPUT rc=%d out=%r", proc.returncode, out)

        if proc.returncode != 0:
            raise TransportIOError(f"gatttool exited with {proc.returncode}: {out.strip()}")

        if "Connection refused" in out:
            raise TransportConnectError("Connection refused.")

        return out
