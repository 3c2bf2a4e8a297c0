"""
Fixed-width binary helpers for the store.

Integers are 8-byte big-endian signed values, booleans a single byte and text
raw UTF-8 bytes.
"""
from __future__ import annotations

import struct
from typing import Iterable, List

INT_WIDTH = 8
_INT = struct.Struct(">q")


def int_to_bytes(value: int) -> bytes:
    return _INT.pack(value)


def bytes_to_int(data: bytes) -> int:
    return _INT.unpack(data)[0]


def ints_to_bytes(values: Iterable[int]) -> bytes:
    return b"".join(_INT.pack(v) for v in values)


def bytes_to_ints(data: bytes) -> List[int]:
    if len(data) % INT_WIDTH:
        raise ValueError(f"packed id sequence has {len(data)} bytes, not a multiple of {INT_WIDTH}")
    return [v for (v,) in _INT.iter_unpack(data)]


def bool_to_bytes(value: bool) -> bytes:
    return b"\x01" if value else b"\x00"


def bytes_to_bool(data: bytes) -> bool:
    return data == b"\x01"


def text_to_bytes(text: str) -> bytes:
    return text.encode("utf-8")


def bytes_to_text(data: bytes) -> str:
    return bytes(data).decode("utf-8")
