"""Allocation requests and the built-in allocator that serves them.

A record is created by asking the system program to move the rent-exempt
amount from a funding identity into a brand-new address, size it and hand its
ownership to the requesting program. The request's byte layout is fixed by the
system program and must be reproduced exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
import struct
from typing import TYPE_CHECKING

from ..constants import (
    ACCOUNT_STORAGE_OVERHEAD,
    EXEMPTION_THRESHOLD_YEARS,
    LAMPORTS_PER_BYTE_YEAR,
    MAX_PERMITTED_DATA_LENGTH,
    SYSTEM_PROGRAM_ID,
)
from .core import AccountMeta, Effect, Instruction, Pubkey
from .errors import (
    AccountAlreadyInUse,
    InvalidAccountDataLength,
    InvalidInstructionData,
    MissingRequiredSignature,
)

if TYPE_CHECKING:  # pragma: no cover - only for typing
    from .host import AccountInfo, InvokeContext

CREATE_ACCOUNT = 0

# u32 opcode, u64 lamports, u64 space, 32-byte owner
_CREATE_ACCOUNT_LAYOUT = struct.Struct("<IQQ32s")


@dataclass(frozen=True)
class CreateAccount:
    lamports: int
    space: int
    owner: Pubkey


def rent_minimum(data_len: int) -> int:
    """Lamports that keep an account of ``data_len`` bytes rent-exempt."""

    return (ACCOUNT_STORAGE_OVERHEAD + data_len) * LAMPORTS_PER_BYTE_YEAR * EXEMPTION_THRESHOLD_YEARS


def encode_create_account(lamports: int, space: int, owner: bytes) -> bytes:
    return _CREATE_ACCOUNT_LAYOUT.pack(CREATE_ACCOUNT, lamports, space, bytes(owner))


def create_account_instruction(
    funder: bytes,
    new_account: bytes,
    lamports: int,
    space: int,
    owner: bytes,
) -> Instruction:
    """Allocation request: both parties writable and signing."""

    return Instruction(
        Pubkey(SYSTEM_PROGRAM_ID),
        (
            AccountMeta.writable(funder, signer=True),
            AccountMeta.writable(new_account, signer=True),
        ),
        encode_create_account(lamports, space, owner),
    )


def decode_system_instruction(data: bytes) -> CreateAccount:
    if len(data) < 4:
        raise InvalidInstructionData("System instruction is missing its opcode")
    (opcode,) = struct.unpack_from("<I", data)
    if opcode != CREATE_ACCOUNT:
        raise InvalidInstructionData(f"Unsupported system instruction {opcode}")
    if len(data) != _CREATE_ACCOUNT_LAYOUT.size:
        raise InvalidInstructionData(
            f"CreateAccount expects {_CREATE_ACCOUNT_LAYOUT.size} bytes, got {len(data)}"
        )
    _, lamports, space, owner = _CREATE_ACCOUNT_LAYOUT.unpack(data)
    return CreateAccount(lamports, space, Pubkey(owner))


def process_system_instruction(
    ctx: "InvokeContext",
    program_id: Pubkey,
    accounts: list["AccountInfo"],
    data: bytes,
) -> Effect:
    """Built-in allocator: fund, size and assign a new account."""

    request = decode_system_instruction(data)
    if len(accounts) < 2:
        raise InvalidInstructionData("CreateAccount requires funder and new account")
    funder, new_account = accounts[0], accounts[1]

    if not funder.is_signer:
        raise MissingRequiredSignature(f"Funder {funder.key.short()} must sign")
    if not new_account.is_signer:
        raise MissingRequiredSignature(f"New account {new_account.key.short()} must sign")
    if (
        new_account.lamports
        or not new_account.data_is_empty()
        or new_account.owner != SYSTEM_PROGRAM_ID
    ):
        raise AccountAlreadyInUse(f"Account {new_account.key.short()} already in use")
    if request.space > MAX_PERMITTED_DATA_LENGTH:
        raise InvalidAccountDataLength(
            f"Requested {request.space} bytes, limit is {MAX_PERMITTED_DATA_LENGTH}",
            requested=request.space,
            limit=MAX_PERMITTED_DATA_LENGTH,
        )

    funder.debit(request.lamports)
    new_account.credit(request.lamports)
    new_account.allocate(request.space)
    new_account.assign(request.owner)

    entry = (
        f"create_account:{new_account.key.short()} lamports={request.lamports} "
        f"space={request.space} owner={request.owner.short()}"
    )
    return Effect("sys", new_account.key, [entry])


__all__ = [
    "CREATE_ACCOUNT",
    "CreateAccount",
    "create_account_instruction",
    "decode_system_instruction",
    "encode_create_account",
    "process_system_instruction",
    "rent_minimum",
]
