import pytest

from listkeeper.encoding import (
    bool_to_bytes,
    bytes_to_bool,
    bytes_to_int,
    bytes_to_ints,
    bytes_to_text,
    int_to_bytes,
    ints_to_bytes,
)


def test_ints_are_eight_byte_big_endian():
    assert int_to_bytes(1) == b"\x00\x00\x00\x00\x00\x00\x00\x01"
    assert int_to_bytes(258) == b"\x00" * 6 + b"\x01\x02"
    assert bytes_to_int(b"\x7f" + b"\xff" * 7) == 2**63 - 1


def test_packed_id_sequence_keeps_order():
    ids = [5, 2**40, 3]
    packed = ints_to_bytes(ids)
    assert len(packed) == 24
    assert bytes_to_ints(packed) == ids
    assert bytes_to_ints(b"") == []


def test_truncated_id_sequence_is_rejected():
    with pytest.raises(ValueError):
        bytes_to_ints(b"\x00" * 12)


def test_bools_and_text():
    assert bool_to_bytes(True) == b"\x01"
    assert bool_to_bytes(False) == b"\x00"
    assert bytes_to_bool(b"\x01") is True
    assert bytes_to_bool(b"\x00") is False
    assert bytes_to_text("Café".encode("utf-8")) == "Café"
