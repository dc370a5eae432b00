# bledriver/model/codec.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict
import struct


@dataclass(frozen=True)
class PrimitiveCodec:
    fmt_le: str  # little-endian struct format
    fmt_be: str  # big-endian struct format
    size: int


PRIMITIVES: Dict[str, PrimitiveCodec] = {
    "uint8":  PrimitiveCodec(fmt_le="B",  fmt_be="B",  size=1),
    "uint16": PrimitiveCodec(fmt_le="<H", fmt_be=">H", size=2),
    "int16":  PrimitiveCodec(fmt_le="<h", fmt_be=">h", size=2),
}


def decode_primitive(
    encode: str,
    raw_bytes: bytes,
    *,
    endian: str = "little",
    allow_trailing: bool = False,
) -> int:
    """
    Decode one primitive from the head of raw_bytes.

    allow_trailing=True ignores bytes past the primitive (attribute values are
    often padded); a short buffer always raises ValueError.
    """
    enc = encode.lower()
    if enc not in PRIMITIVES:
        raise NotImplementedError(f"Unknown encode type '{encode}'")

    codec = PRIMITIVES[enc]
    n = len(raw_bytes)
    if n < codec.size or (n != codec.size and not allow_trailing):
        raise ValueError(f"Raw bytes length {n} != expected {codec.size} for '{encode}'")

    fmt = codec.fmt_le if endian == "little" else codec.fmt_be
    return struct.unpack(fmt, bytes(raw_bytes[: codec.size]))[0]


def decode_u16_le(raw_bytes: bytes) -> int:
    return int(decode_primitive("uint16", raw_bytes, endian="little", allow_trailing=True))
