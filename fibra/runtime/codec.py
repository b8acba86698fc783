"""Fixed-layout binary codec for the persisted computation state."""

from __future__ import annotations

from dataclasses import dataclass
import struct

from ..constants import DATA_LEN

# [0:8) a, [8:16) b, [16:24) remaining, [24] bump; little-endian
_LAYOUT = struct.Struct("<QQQB")

U64_MAX = 2**64 - 1


@dataclass(frozen=True)
class ComputationState:
    a: int
    b: int
    remaining: int
    bump: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.remaining == 0


def initial_state(n: int, bump: int) -> ComputationState:
    """State written on first invocation: fib(0), fib(1) and ``n`` steps left."""

    return ComputationState(0, 1, n, bump)


def encode_state(state: ComputationState) -> bytes:
    try:
        return _LAYOUT.pack(state.a, state.b, state.remaining, state.bump)
    except struct.error as exc:
        raise ValueError(f"State out of range for the record layout: {state}") from exc


def decode_state(data: bytes | bytearray | memoryview) -> ComputationState:
    if len(data) != DATA_LEN:
        raise ValueError(f"State record must be {DATA_LEN} bytes, got {len(data)}")
    a, b, remaining, bump = _LAYOUT.unpack(bytes(data))
    return ComputationState(a, b, remaining, bump)


def write_state(buffer: bytearray, state: ComputationState) -> None:
    """Overwrite ``buffer`` with ``state`` in one slice assignment."""

    if len(buffer) != DATA_LEN:
        raise ValueError(f"State buffer must be {DATA_LEN} bytes, got {len(buffer)}")
    buffer[:] = encode_state(state)


__all__ = [
    "ComputationState",
    "U64_MAX",
    "decode_state",
    "encode_state",
    "initial_state",
    "write_state",
]
