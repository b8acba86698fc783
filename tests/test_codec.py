"""Tests for the fixed 25-byte state record."""

import pytest

from fibra.constants import DATA_LEN
from fibra.runtime.codec import (
    U64_MAX,
    ComputationState,
    decode_state,
    encode_state,
    initial_state,
    write_state,
)


def test_encode_uses_little_endian_field_layout():
    state = ComputationState(a=1, b=2, remaining=3, bump=254)

    raw = encode_state(state)

    assert len(raw) == DATA_LEN
    assert raw[0:8] == (1).to_bytes(8, "little")
    assert raw[8:16] == (2).to_bytes(8, "little")
    assert raw[16:24] == (3).to_bytes(8, "little")
    assert raw[24] == 254


def test_decode_accepts_any_25_bytes():
    state = decode_state(b"\xff" * DATA_LEN)

    assert state == ComputationState(U64_MAX, U64_MAX, U64_MAX, 255)
    assert decode_state(bytearray(DATA_LEN)) == ComputationState(0, 0, 0, 0)


def test_round_trip_at_field_extremes():
    for state in (
        ComputationState(0, 1, 0, 0),
        ComputationState(U64_MAX, 7, 1, 255),
        ComputationState(12200160415121876738, 7540113804746346429, 42, 253),
    ):
        assert decode_state(encode_state(state)) == state


@pytest.mark.parametrize("length", [0, 24, 26])
def test_decode_rejects_other_lengths(length):
    with pytest.raises(ValueError, match="25 bytes"):
        decode_state(b"\x00" * length)


def test_encode_rejects_out_of_range_fields():
    with pytest.raises(ValueError, match="out of range"):
        encode_state(ComputationState(-1, 0, 0, 0))
    with pytest.raises(ValueError, match="out of range"):
        encode_state(ComputationState(0, 0, 0, 256))


def test_initial_state_and_terminal_flag():
    state = initial_state(4, 250)

    assert state == ComputationState(0, 1, 4, 250)
    assert not state.is_terminal
    assert initial_state(0, 1).is_terminal


def test_write_state_overwrites_buffer_in_place():
    buffer = bytearray(DATA_LEN)

    write_state(buffer, ComputationState(5, 8, 1, 9))

    assert len(buffer) == DATA_LEN
    assert decode_state(buffer) == ComputationState(5, 8, 1, 9)

    with pytest.raises(ValueError):
        write_state(bytearray(10), ComputationState(0, 1, 0, 0))
