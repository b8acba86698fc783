"""Derived-address computation.

A derived address is the SHA-256 digest of a seed list, the owning program id
and a fixed marker. The digest is accepted only when it does *not* decode to a
point on the Ed25519 curve, so no private key can ever sign for it; the owning
program is the only authority able to act for that address.
"""

from __future__ import annotations

import hashlib
from typing import Iterable, Sequence

from ..constants import MAX_SEED_LEN, MAX_SEEDS, PDA_MARKER, SEED
from .core import Pubkey
from .errors import InvalidSeeds

# Ed25519 field prime and twisted Edwards curve constant d = -121665/121666.
_P = 2**255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P
_Y_MASK = (1 << 255) - 1


def is_on_curve(data: bytes) -> bool:
    """Return True when ``data`` decompresses to an Ed25519 curve point.

    The sign bit is ignored and a non-canonical y (>= p) is reduced, so the
    result only depends on whether x^2 = (y^2 - 1) / (d*y^2 + 1) has a root.
    """

    if len(data) != 32:
        raise ValueError(f"Curve point encoding requires 32 bytes, got {len(data)}")
    y = (int.from_bytes(data, "little") & _Y_MASK) % _P
    yy = y * y % _P
    u = (yy - 1) % _P
    v = (_D * yy + 1) % _P
    x2 = u * pow(v, _P - 2, _P) % _P
    if x2 == 0:
        return True
    return pow(x2, (_P - 1) // 2, _P) == 1


def _check_seeds(seeds: Sequence[bytes]) -> None:
    if len(seeds) > MAX_SEEDS:
        raise InvalidSeeds(f"At most {MAX_SEEDS} seeds allowed, got {len(seeds)}")
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise InvalidSeeds(
                f"Seed length {len(seed)} exceeds the {MAX_SEED_LEN}-byte limit"
            )


def create_program_address(seeds: Sequence[bytes], program_id: bytes) -> Pubkey:
    """Hash ``seeds`` under ``program_id``; reject digests that lie on the curve."""

    seeds = [bytes(s) for s in seeds]
    _check_seeds(seeds)
    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(bytes(program_id))
    hasher.update(PDA_MARKER)
    digest = hasher.digest()
    if is_on_curve(digest):
        raise InvalidSeeds("Derived address falls on the Ed25519 curve")
    return Pubkey(digest)


def find_program_address(
    seeds: Iterable[bytes], program_id: bytes
) -> tuple[Pubkey, int]:
    """Return the first off-curve address searching the bump from 255 down."""

    base = [bytes(s) for s in seeds]
    # the bump itself occupies one seed slot
    _check_seeds(base + [b""])
    for bump in range(255, -1, -1):
        try:
            address = create_program_address(base + [bytes([bump])], program_id)
        except InvalidSeeds:
            continue
        return address, bump
    raise InvalidSeeds("No bump produced an off-curve address")


def state_seeds(identity: bytes, bump: int | None = None) -> list[bytes]:
    """Seed list for an identity's record, optionally including the bump."""

    seeds = [SEED, bytes(identity)]
    if bump is not None:
        seeds.append(bytes([bump]))
    return seeds


def derive_state_address(program_id: bytes, identity: bytes) -> tuple[Pubkey, int]:
    """Address and bump of the computation record owned by ``identity``."""

    return find_program_address(state_seeds(identity), program_id)


__all__ = [
    "create_program_address",
    "derive_state_address",
    "find_program_address",
    "is_on_curve",
    "state_seeds",
]
