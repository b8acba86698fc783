"""Resume dispatcher: the program entry point.

Each invocation performs exactly one unit of work. Whether that work is
"allocate and initialise" or "load and advance" is decided only by whether the
identity's record already holds bytes. When steps remain after a write, the
program asks the host to run itself again one level deeper; the host's depth
ceiling is the only bound on how far a single transaction can get.
"""

from __future__ import annotations

import struct
from typing import TYPE_CHECKING, Optional

from ..constants import DATA_LEN, SYSTEM_PROGRAM_ID
from .allocation import create_account_instruction, rent_minimum
from .codec import ComputationState, decode_state, initial_state, write_state
from .core import AccountMeta, Effect, Instruction, Pubkey
from .derivation import create_program_address, derive_state_address, state_seeds
from .engine import Done, step
from .errors import (
    AddressMismatch,
    IncorrectProgramId,
    InvalidAccountData,
    InvalidInstructionData,
    InvalidSeeds,
    MissingRequiredSignature,
)

if TYPE_CHECKING:  # pragma: no cover - only for typing
    from .host import AccountInfo, Bank, InvokeContext


def process_instruction(
    ctx: "InvokeContext",
    program_id: Pubkey,
    accounts: list["AccountInfo"],
    data: bytes,
) -> Effect:
    if len(accounts) < 3:
        raise InvalidInstructionData(
            f"Expected record, identity and system accounts, got {len(accounts)}"
        )
    record, identity, system = accounts[0], accounts[1], accounts[2]

    if record.data_is_empty():
        return _initialize(ctx, program_id, record, identity, system, data)
    return _advance(ctx, program_id, record, identity, system)


def _initialize(ctx, program_id, record, identity, system, data) -> Effect:
    if len(data) < 8:
        raise InvalidInstructionData("Initiating call needs a u64 step count")
    if not identity.is_signer:
        raise MissingRequiredSignature(f"Identity {identity.key.short()} must sign")
    if system.key != SYSTEM_PROGRAM_ID:
        raise IncorrectProgramId(f"Expected the system program, got {system.key.short()}")

    (n,) = struct.unpack_from("<Q", data)
    expected, bump = derive_state_address(program_id, identity.key)
    if record.key != expected:
        raise AddressMismatch(
            f"Record {record.key.short()} is not the derived address {expected.short()}"
        )

    allocation = ctx.invoke_signed(
        create_account_instruction(
            identity.key, record.key, rent_minimum(DATA_LEN), DATA_LEN, program_id
        ),
        [identity, record, system],
        [state_seeds(identity.key, bump)],
    )

    state = initial_state(n, bump)
    write_state(record.borrow_mut_data(), state)
    ctx.log(f"init: a={state.a} b={state.b} n={n}")
    effect = allocation.bind(
        lambda _: Effect("state", state.b, [f"init:{record.key.short()} n={n}"])
    )

    if n > 0:
        return effect.bind(lambda _: self_invoke(ctx, program_id, record, identity, system))
    return effect


def _verify_record(program_id, record, identity, state: ComputationState) -> None:
    try:
        expected = create_program_address(state_seeds(identity.key, state.bump), program_id)
    except InvalidSeeds as exc:
        raise AddressMismatch(f"Stored bump {state.bump} is not valid for this identity") from exc
    if record.key != expected:
        raise AddressMismatch(
            f"Record {record.key.short()} does not belong to identity {identity.key.short()}"
        )


def _advance(ctx, program_id, record, identity, system) -> Effect:
    if len(record.data) != DATA_LEN:
        raise InvalidAccountData(
            f"Record {record.key.short()} holds {len(record.data)} bytes, expected {DATA_LEN}"
        )
    state = decode_state(record.data)
    _verify_record(program_id, record, identity, state)

    out = step(state.a, state.b, state.remaining)
    if isinstance(out, Done):
        ctx.log(f"done: {out.result}")
        return Effect("pure", out.result, [f"done:{out.result}"])

    write_state(
        record.borrow_mut_data(),
        ComputationState(out.a, out.b, out.remaining, state.bump),
    )
    ctx.log(f"step: a={out.a} b={out.b} n={out.remaining}")
    effect = Effect("state", out.b, [f"step:{record.key.short()} n={out.remaining}"])

    if out.remaining > 0:
        return effect.bind(lambda _: self_invoke(ctx, program_id, record, identity, system))
    ctx.log(f"done: {out.b}")
    return effect


def self_invoke(ctx, program_id, record, identity, system) -> Effect:
    """Re-enter this program one level deeper with an empty payload."""

    instruction = Instruction(
        program_id,
        (
            AccountMeta.writable(record.key),
            AccountMeta.writable(identity.key, signer=identity.is_signer),
            AccountMeta.readonly(SYSTEM_PROGRAM_ID),
        ),
        b"",
    )
    return ctx.invoke(instruction, [record, identity, system]).raise_to("sys")


def init_instruction(program_id: bytes, identity: bytes, n: int) -> Instruction:
    """Client-side builder for the initiating call."""

    record, _ = derive_state_address(program_id, identity)
    return Instruction(
        program_id,
        (
            AccountMeta.writable(record),
            AccountMeta.writable(identity, signer=True),
            AccountMeta.readonly(SYSTEM_PROGRAM_ID),
        ),
        struct.pack("<Q", n),
    )


def resume_instruction(program_id: bytes, identity: bytes, *, signer: bool = False) -> Instruction:
    """Client-side builder for a resume call (empty payload)."""

    record, _ = derive_state_address(program_id, identity)
    return Instruction(
        program_id,
        (
            AccountMeta.writable(record),
            AccountMeta.writable(identity, signer=signer),
            AccountMeta.readonly(SYSTEM_PROGRAM_ID),
        ),
        b"",
    )


class StateStore:
    """Read-only map from identity to its computation state."""

    def __init__(self, bank: "Bank", program_id: bytes):
        self.bank = bank
        self.program_id = Pubkey(program_id)

    def address(self, identity: bytes) -> tuple[Pubkey, int]:
        return derive_state_address(self.program_id, identity)

    def get(self, identity: bytes) -> Optional[ComputationState]:
        record, _ = self.address(identity)
        account = self.bank.get_account(record)
        if account is None or not account.data:
            return None
        if account.owner != self.program_id:
            raise InvalidAccountData(
                f"Record {record.short()} is owned by {account.owner.short()}"
            )
        return decode_state(account.data)

    def __contains__(self, identity: bytes) -> bool:
        return self.get(identity) is not None


__all__ = [
    "StateStore",
    "init_instruction",
    "process_instruction",
    "resume_instruction",
    "self_invoke",
]
