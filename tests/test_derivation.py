"""Tests for :mod:`fibra.runtime.derivation`."""

import hashlib

import pytest

from fibra.constants import PDA_MARKER, SEED
from fibra.runtime.core import Pubkey
from fibra.runtime.crypto import Keypair
from fibra.runtime.derivation import (
    create_program_address,
    derive_state_address,
    find_program_address,
    is_on_curve,
    state_seeds,
)
from fibra.runtime.errors import InvalidSeeds

from conftest import PROGRAM_ID, make_keypair


def test_real_public_keys_are_on_curve():
    for _ in range(8):
        assert is_on_curve(Keypair.generate().pubkey)


def test_small_y_encodings_are_on_curve():
    # y = 1 is the neutral element, y = 0 gives x^2 = -1 which has a root mod p
    assert is_on_curve(bytes([1]) + bytes(31))
    assert is_on_curve(bytes(32))


def test_is_on_curve_rejects_wrong_length():
    with pytest.raises(ValueError, match="32 bytes"):
        is_on_curve(b"\x00" * 31)


def test_find_program_address_is_deterministic():
    identity = make_keypair("alice").pubkey

    first = derive_state_address(PROGRAM_ID, identity)
    second = derive_state_address(PROGRAM_ID, identity)

    assert first == second
    address, bump = first
    assert isinstance(address, Pubkey)
    assert 0 <= bump <= 255
    assert not is_on_curve(address)


def test_found_address_matches_manual_hash():
    identity = make_keypair("bob").pubkey
    address, bump = derive_state_address(PROGRAM_ID, identity)

    digest = hashlib.sha256(
        SEED + bytes(identity) + bytes([bump]) + bytes(PROGRAM_ID) + PDA_MARKER
    ).digest()

    assert address == digest
    assert create_program_address(state_seeds(identity, bump), PROGRAM_ID) == address


def test_bump_is_highest_off_curve_candidate():
    identity = make_keypair("carol").pubkey
    _, bump = derive_state_address(PROGRAM_ID, identity)

    for higher in range(bump + 1, 256):
        with pytest.raises(InvalidSeeds):
            create_program_address(state_seeds(identity, higher), PROGRAM_ID)


def test_addresses_differ_per_identity_and_program():
    alice = make_keypair("alice").pubkey
    bob = make_keypair("bob").pubkey
    other_program = Pubkey(hashlib.sha256(b"other").digest())

    a_addr, _ = derive_state_address(PROGRAM_ID, alice)
    b_addr, _ = derive_state_address(PROGRAM_ID, bob)
    a_other, _ = derive_state_address(other_program, alice)

    assert len({a_addr, b_addr, a_other}) == 3


def test_seed_limits_are_enforced():
    with pytest.raises(InvalidSeeds, match="Seed length"):
        create_program_address([b"x" * 33], PROGRAM_ID)

    with pytest.raises(InvalidSeeds, match="At most 16"):
        create_program_address([b"s"] * 17, PROGRAM_ID)

    # sixteen seeds leave no room for the bump
    with pytest.raises(InvalidSeeds):
        find_program_address([b"s"] * 16, PROGRAM_ID)


def test_state_seeds_layout():
    identity = make_keypair("dave").pubkey

    assert state_seeds(identity) == [SEED, bytes(identity)]
    assert state_seeds(identity, 254) == [SEED, bytes(identity), b"\xfe"]
