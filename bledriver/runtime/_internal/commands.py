# bledriver/runtime/_internal/commands.py
from __future__ import annotations

import logging
from typing import Optional

from bledriver.interfaces.command_sink import CommandEvent, CommandSink
from bledriver.transport.base import RadioTransport
from bledriver.transport.errors import TransportError


class CommandIssuer:
    """
    Sends raw commands for one loop and reports every outcome to the
    optional command sink. send() never raises TransportError; it returns
    False instead so callers decide whether a failure matters.
    """

    def __init__(
        self,
        transport: RadioTransport,
        *,
        cmd_sink: Optional[CommandSink] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.transport = transport
        self._cmd_sink = cmd_sink
        self._log = logger or logging.getLogger(__name__)

    def send(self, address: str, name: str, payload: bytes) -> bool:
        self._log.debug("COMMAND_SEND address=%s cmd=%s raw=%s", address, name, payload.hex())
        try:
            self.transport.send_command(address, payload)
        except TransportError as e:
            self._log.warning("COMMAND_FAILED address=%s cmd=%s err=%s", address, name, e)
            self._trace(name, "failed", address, {"raw": payload.hex(), "error": str(e)})
            return False
        self._trace(name, "sent", address, {"raw": payload.hex()})
        return True

    def subscribe(self, address: str, name: str, start: int, end: int) -> bool:
        self._log.debug("NOTIFY_ENABLE address=%s range=%d-%d", address, start, end)
        try:
            self.transport.notify(address, True, start, end, indicate=True, ack=False)
        except TransportError as e:
            self._log.warning("NOTIFY_ENABLE_FAILED address=%s range=%d-%d err=%s", address, start, end, e)
            self._trace(name, "failed", address, {"start": start, "end": end, "error": str(e)})
            return False
        self._trace(name, "sent", address, {"start": start, "end": end})
        return True

    def _trace(self, name: str, kind: str, address: str, payload: dict) -> None:
        sink = self._cmd_sink
        if sink is None:
            return
        try:
            sink.on_command(CommandEvent(name=name, kind=kind, address=address, payload=payload))
        except Exception:
            self._log.exception("COMMAND_SINK_ERROR cmd=%s", name)
