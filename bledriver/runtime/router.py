# bledriver/runtime/router.py
from __future__ import annotations

import logging
from typing import Mapping, Optional

from bledriver.core.errors import DecodeError
from bledriver.interfaces.publisher import Publisher
from bledriver.model.calibration import CalibrationPipeline
from bledriver.model.codec import decode_u16_le
from bledriver.model.identity import PeripheralIdentity
from bledriver.model.quantity import QuantityKind
from bledriver.model.reading import SensorReading
from bledriver.protocol.defs import NOTIFY_HANDLES


def decode_value(data: bytes) -> int:
    """Little-endian uint16 at the head of an attribute value."""
    try:
        return decode_u16_le(data)
    except ValueError as e:
        raise DecodeError(
            f"Cannot decode uint16 from {bytes(data).hex() or '<empty>'}.",
            details={"len": len(data), "reason": str(e)},
        ) from None


class NotificationRouter:
    """
    Routes (attribute handle, raw bytes) to the matching decoder and
    publishes the calibrated result for one device.

    Unknown handles are logged at info and dropped; undecodable payloads are
    logged at warning and dropped. Nothing here raises into the transport.
    """

    def __init__(
        self,
        identity: PeripheralIdentity,
        pipeline: CalibrationPipeline,
        publisher: Optional[Publisher] = None,
        *,
        handles: Mapping[int, QuantityKind] = NOTIFY_HANDLES,
        logger: Optional[logging.Logger] = None,
    ):
        self.identity = identity
        self._pipeline = pipeline
        self._publisher = publisher
        self._handles = dict(handles)
        self._log = logger or logging.getLogger(__name__)

    def on_notification(self, attribute_id: int, data: bytes) -> Optional[SensorReading]:
        kind = self._handles.get(int(attribute_id))
        if kind is None:
            self._log.info(
                "NOTIFICATION_UNKNOWN_HANDLE address=%s handle=%d data=%s",
                self.identity.address,
                attribute_id,
                bytes(data).hex(),
            )
            return None

        reading = self.decode(kind, data, attribute_id=attribute_id)
        if reading is None:
            return None

        self._log.debug(
            "NOTIFICATION_VALUE address=%s kind=%s raw=%d value=%f",
            self.identity.address,
            kind.value,
            reading.raw,
            reading.value,
        )
        self.publish(reading)
        return reading

    def decode(
        self,
        kind: QuantityKind,
        data: bytes,
        *,
        attribute_id: Optional[int] = None,
    ) -> Optional[SensorReading]:
        try:
            raw = decode_value(data)
        except DecodeError as e:
            self._log.warning(
                "NOTIFICATION_DECODE_FAILED address=%s kind=%s msg=%s",
                self.identity.address,
                QuantityKind(kind).value,
                e.message,
            )
            return None
        return self._pipeline.reading(kind, data, raw, attribute_id=attribute_id)

    def publish(self, reading: SensorReading) -> None:
        pub = self._publisher
        if pub is None:
            return
        try:
            pub.publish_reading(self.identity, reading)
        except Exception:
            self._log.exception("PUBLISH_READING_ERROR address=%s", self.identity.address)
