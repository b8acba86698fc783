"""Core runtime data structures for fibra."""

from __future__ import annotations

from dataclasses import dataclass, field
import itertools
from typing import Any, Callable, Iterable, Optional

from ..constants import EFFECT_GRADES

_unique_counter = itertools.count(1)


class Pubkey(bytes):
    """A 32-byte account address."""

    LENGTH = 32

    def __new__(cls, value: bytes | bytearray | "Pubkey" = b""):
        raw = bytes(value)
        if len(raw) != cls.LENGTH:
            raise ValueError(
                f"Pubkey requires {cls.LENGTH} bytes, got {len(raw)}"
            )
        return super().__new__(cls, raw)

    @classmethod
    def from_hex(cls, text: str) -> "Pubkey":
        return cls(bytes.fromhex(text))

    @classmethod
    def new_unique(cls) -> "Pubkey":
        """Return a distinct address on every call (test helper)."""

        return cls(next(_unique_counter).to_bytes(cls.LENGTH, "big"))

    def short(self) -> str:
        return self.hex()[:8]

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"Pubkey({self.hex()[:12]}…)"


@dataclass(frozen=True)
class AccountMeta:
    pubkey: Pubkey
    is_signer: bool = False
    is_writable: bool = False

    def __post_init__(self):
        object.__setattr__(self, "pubkey", Pubkey(self.pubkey))

    @classmethod
    def writable(cls, pubkey: bytes, signer: bool = False) -> "AccountMeta":
        return cls(Pubkey(pubkey), signer, True)

    @classmethod
    def readonly(cls, pubkey: bytes, signer: bool = False) -> "AccountMeta":
        return cls(Pubkey(pubkey), signer, False)


@dataclass(frozen=True)
class Instruction:
    """A call into a program: target, ordered accounts, opaque payload."""

    program_id: Pubkey
    accounts: tuple[AccountMeta, ...] = ()
    data: bytes = b""

    def __post_init__(self):
        object.__setattr__(self, "program_id", Pubkey(self.program_id))
        object.__setattr__(self, "accounts", tuple(self.accounts))
        object.__setattr__(self, "data", bytes(self.data))

    def serialize(self) -> bytes:
        """Canonical byte form used when signing a transaction message."""

        out = bytearray(self.program_id)
        out += len(self.accounts).to_bytes(2, "little")
        for meta in self.accounts:
            out += meta.pubkey
            out.append((1 if meta.is_signer else 0) | (2 if meta.is_writable else 0))
        out += len(self.data).to_bytes(4, "little")
        out += self.data
        return bytes(out)


@dataclass
class Account:
    """Stored account: balance, raw data and owning program."""

    lamports: int = 0
    data: bytearray = field(default_factory=bytearray)
    owner: Pubkey = field(default_factory=lambda: Pubkey(bytes(32)))
    executable: bool = False

    def __post_init__(self):
        self.data = bytearray(self.data)
        self.owner = Pubkey(self.owner)

    def copy(self) -> "Account":
        return Account(self.lamports, bytearray(self.data), self.owner, self.executable)


class Effect:
    """Graded result of an invocation: value plus ordered log lines."""

    def __init__(self, grade: str, value: Any, log: Optional[list[str]] = None):
        if grade not in EFFECT_GRADES:
            raise ValueError(f"Unknown effect grade: {grade}")
        self.grade = grade
        self.value = value
        self.log = log or []

    def bind(self, fn: Callable[[Any], "Effect"]) -> "Effect":
        out = fn(self.value)
        new_idx = max(EFFECT_GRADES.index(self.grade), EFFECT_GRADES.index(out.grade))
        return Effect(EFFECT_GRADES[new_idx], out.value, self.log + out.log)

    def raise_to(self, grade: str) -> "Effect":
        """Return a copy graded at least ``grade``."""

        new_idx = max(EFFECT_GRADES.index(self.grade), EFFECT_GRADES.index(grade))
        return Effect(EFFECT_GRADES[new_idx], self.value, list(self.log))

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"<Effect {self.grade} value={self.value!r} log={len(self.log)}>"


def highest_grade(grades: Iterable[str]) -> str:
    idx = 0
    for grade in grades:
        idx = max(idx, EFFECT_GRADES.index(grade))
    return EFFECT_GRADES[idx]


__all__ = [
    "Account",
    "AccountMeta",
    "Effect",
    "Instruction",
    "Pubkey",
    "highest_grade",
]
