"""Shared fixtures for the fibra test-suite."""

from __future__ import annotations

import hashlib
import itertools

import pytest

from fibra.runtime import (
    Keypair,
    Pubkey,
    Runtime,
    Transaction,
    init_instruction,
    process_instruction,
    resume_instruction,
)

PROGRAM_ID = Pubkey(hashlib.sha256(b"fibra-tests:program").digest())
FUNDING = 10_000_000

_nonces = itertools.count(1)


def make_keypair(label: str) -> Keypair:
    return Keypair.from_seed(hashlib.sha256(label.encode()).digest())


@pytest.fixture
def program_id():
    return PROGRAM_ID


@pytest.fixture
def runtime():
    rt = Runtime()
    rt.register_program(PROGRAM_ID, process_instruction)
    return rt


@pytest.fixture
def payer(runtime):
    keypair = make_keypair("payer")
    runtime.bank.airdrop(keypair.pubkey, FUNDING)
    return keypair


def send(runtime, instruction, *signers, fee_payer=None):
    """Sign ``instruction`` and process it as a single-instruction transaction."""

    fee_payer = fee_payer or signers[0].pubkey
    tx = Transaction([instruction], fee_payer, nonce=next(_nonces)).sign(*signers)
    return runtime.process_transaction(tx)


def run_init(runtime, payer, n, program_id=PROGRAM_ID):
    return send(runtime, init_instruction(program_id, payer.pubkey, n), payer)


def run_resume(runtime, payer, program_id=PROGRAM_ID):
    return send(runtime, resume_instruction(program_id, payer.pubkey), payer)
