"""In-process execution host.

The host plays the platform's role around a program: it keeps the accounts
database, verifies transaction signatures, runs each instruction on an invoke
stack whose height is capped, propagates account privileges into nested calls
and wraps the whole transaction in a unit of work that either commits every
write or none of them.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import hashlib
import itertools
from typing import Callable, Iterable, Iterator, Optional, Sequence

from ..constants import MAX_INVOKE_DEPTH, SYSTEM_PROGRAM_ID
from .allocation import process_system_instruction
from .core import Account, Effect, Instruction, Pubkey, highest_grade
from .crypto import Keypair, verify_ed25519
from .derivation import create_program_address
from .errors import (
    CallDepthExceeded,
    ExternalAccountDataModified,
    InsufficientFunds,
    ProgramError,
    ReadonlyDataModified,
    SignatureFailure,
    TransactionError,
    UnknownProgram,
)
from .privileges import (
    Privilege,
    grant_for_invocation,
    top_level_privileges,
)

ProgramHandler = Callable[
    ["InvokeContext", Pubkey, list["AccountInfo"], bytes], Optional[Effect]
]


class AccountInfo:
    """One frame's view of an account, gated by that frame's privileges."""

    def __init__(
        self, key: Pubkey, account: Account, privilege: Privilege, program_id: Pubkey
    ):
        self.key = key
        self._account = account
        self.privilege = privilege
        self._program_id = program_id

    @property
    def is_signer(self) -> bool:
        return self.privilege.is_signer

    @property
    def is_writable(self) -> bool:
        return self.privilege.is_writable

    @property
    def lamports(self) -> int:
        return self._account.lamports

    @property
    def owner(self) -> Pubkey:
        return self._account.owner

    @property
    def data(self) -> bytes:
        return bytes(self._account.data)

    def data_is_empty(self) -> bool:
        return len(self._account.data) == 0

    def _require_mutable(self, what: str) -> None:
        if not self.is_writable:
            raise ReadonlyDataModified(
                f"{what} of read-only account {self.key.short()}"
            )
        if self._account.owner != self._program_id:
            raise ExternalAccountDataModified(
                f"{what} of account {self.key.short()} owned by "
                f"{self._account.owner.short()}"
            )

    def borrow_mut_data(self) -> bytearray:
        """Mutable account buffer; only the owning program may write it."""

        self._require_mutable("data write")
        return self._account.data

    def debit(self, lamports: int) -> None:
        self._require_mutable("debit")
        if self._account.lamports < lamports:
            raise InsufficientFunds(
                f"Account {self.key.short()} holds {self._account.lamports} "
                f"lamports, needs {lamports}",
                available=self._account.lamports,
                required=lamports,
            )
        self._account.lamports -= lamports

    def credit(self, lamports: int) -> None:
        if not self.is_writable:
            raise ReadonlyDataModified(f"credit of read-only account {self.key.short()}")
        self._account.lamports += lamports

    def allocate(self, space: int) -> None:
        self._require_mutable("allocation")
        self._account.data = bytearray(space)

    def assign(self, owner: bytes) -> None:
        self._require_mutable("assignment")
        self._account.owner = Pubkey(owner)

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        flags = ("s" if self.is_signer else "") + ("w" if self.is_writable else "")
        return f"<AccountInfo {self.key.short()} [{flags}] len={len(self._account.data)}>"


@dataclass
class Frame:
    """One entry of the invoke stack, kept after it returns for tracing."""

    frame_id: int
    parent_id: Optional[int]
    program_id: Pubkey
    height: int
    data: bytes
    status: str = "running"
    error: Optional[str] = None
    grade: Optional[str] = None
    logs: list[str] = field(default_factory=list)


class InvokeContext:
    """Invoke stack for a single transaction."""

    def __init__(
        self,
        accounts: dict[Pubkey, Account],
        programs: dict[Pubkey, ProgramHandler],
        max_invoke_depth: int = MAX_INVOKE_DEPTH,
    ):
        if max_invoke_depth < 1:
            raise ValueError("max_invoke_depth must be at least 1")
        self.accounts = accounts
        self.programs = programs
        self.max_invoke_depth = max_invoke_depth
        self.stack: list[Frame] = []
        self.frames: list[Frame] = []
        self.logs: list[str] = []
        self._frame_ids = itertools.count()

    @property
    def stack_height(self) -> int:
        return len(self.stack)

    @property
    def current_frame(self) -> Frame:
        if not self.stack:
            raise RuntimeError("No program is executing")
        return self.stack[-1]

    def log(self, message: str) -> None:
        line = f"Program log: {message}"
        self.logs.append(line)
        if self.stack:
            self.stack[-1].logs.append(message)

    def _load(self, key: Pubkey) -> Account:
        account = self.accounts.get(key)
        if account is None:
            account = Account(owner=Pubkey(SYSTEM_PROGRAM_ID))
            self.accounts[key] = account
        return account

    def process(
        self, instruction: Instruction, privileges: dict[Pubkey, Privilege]
    ) -> Effect:
        """Run ``instruction`` one level above the current stack top."""

        height = self.stack_height + 1
        if height > self.max_invoke_depth:
            raise CallDepthExceeded(
                f"Invoke stack height {height} exceeds the limit of "
                f"{self.max_invoke_depth}",
                depth=height,
                limit=self.max_invoke_depth,
            )
        program_id = instruction.program_id
        handler = self.programs.get(program_id)
        if handler is None:
            raise UnknownProgram(f"No program registered at {program_id.short()}")

        infos = [
            AccountInfo(meta.pubkey, self._load(meta.pubkey), privileges[meta.pubkey], program_id)
            for meta in instruction.accounts
        ]
        parent = self.stack[-1].frame_id if self.stack else None
        frame = Frame(next(self._frame_ids), parent, program_id, height, instruction.data)
        self.frames.append(frame)
        self.stack.append(frame)
        self.logs.append(f"Program {program_id.short()} invoke [{height}]")
        try:
            effect = handler(self, program_id, infos, instruction.data)
        except ProgramError as exc:
            frame.status = "failed"
            frame.error = f"{type(exc).__name__}: {exc}"
            self.logs.append(f"Program {program_id.short()} failed: {exc}")
            raise
        finally:
            self.stack.pop()

        if effect is None:
            effect = Effect("pure", None)
        frame.status = "ok"
        frame.grade = effect.grade
        self.logs.append(f"Program {program_id.short()} success")
        return effect

    def invoke(self, instruction: Instruction, account_infos: Sequence[AccountInfo]) -> Effect:
        return self.invoke_signed(instruction, account_infos, ())

    def invoke_signed(
        self,
        instruction: Instruction,
        account_infos: Sequence[AccountInfo],
        signer_seeds: Iterable[Sequence[bytes]],
    ) -> Effect:
        """Nested call; ``signer_seeds`` let the caller sign for its derived addresses."""

        caller = self.current_frame
        if self.stack_height + 1 > self.max_invoke_depth:
            raise CallDepthExceeded(
                f"Nested invocation at height {self.stack_height + 1} exceeds the "
                f"limit of {self.max_invoke_depth}",
                depth=self.stack_height + 1,
                limit=self.max_invoke_depth,
            )
        derived = [create_program_address(seeds, caller.program_id) for seeds in signer_seeds]
        privileges = grant_for_invocation(
            {info.key: info.privilege for info in account_infos},
            instruction.accounts,
            derived,
            action=f"invoke:{instruction.program_id.short()}",
        )
        return self.process(instruction, privileges)


@dataclass
class Transaction:
    """Signed batch of top-level instructions."""

    instructions: list[Instruction]
    fee_payer: Pubkey
    nonce: int = 0
    signatures: dict[Pubkey, bytes] = field(default_factory=dict)

    def __post_init__(self):
        self.instructions = list(self.instructions)
        self.fee_payer = Pubkey(self.fee_payer)

    def message(self) -> bytes:
        out = bytearray(b"fibra-tx")
        out += self.fee_payer
        out += self.nonce.to_bytes(8, "little")
        out += len(self.instructions).to_bytes(2, "little")
        for ix in self.instructions:
            out += ix.serialize()
        return bytes(out)

    def required_signers(self) -> list[Pubkey]:
        keys = [self.fee_payer]
        for ix in self.instructions:
            for meta in ix.accounts:
                if meta.is_signer and meta.pubkey not in keys:
                    keys.append(meta.pubkey)
        return keys

    def sign(self, *keypairs: Keypair) -> "Transaction":
        message = self.message()
        required = self.required_signers()
        for keypair in keypairs:
            if keypair.pubkey not in required:
                raise ValueError(f"Keypair {keypair.pubkey.short()} is not a required signer")
            self.signatures[keypair.pubkey] = keypair.sign(message)
        return self

    def verify(self) -> None:
        message = self.message()
        for key in self.required_signers():
            signature = self.signatures.get(key)
            if signature is None:
                raise SignatureFailure(f"Missing signature for {key.short()}")
            if not verify_ed25519(key, signature, message):
                raise SignatureFailure(f"Invalid signature for {key.short()}")

    @property
    def signature(self) -> str:
        sig = self.signatures.get(self.fee_payer, b"")
        return sig.hex() if sig else hashlib.sha256(self.message()).hexdigest()


@dataclass
class TransactionReceipt:
    signature: str
    logs: list[str]
    grade: str
    frames: list[Frame]
    value: object = None


def _is_vacant(account: Account) -> bool:
    return (
        account.lamports == 0
        and not account.data
        and account.owner == SYSTEM_PROGRAM_ID
        and not account.executable
    )


class Bank:
    """Accounts database plus registered programs."""

    def __init__(self, accounts: dict[Pubkey, Account] | None = None):
        self.accounts: dict[Pubkey, Account] = dict(accounts or {})
        self.programs: dict[Pubkey, ProgramHandler] = {}
        self.register_program(SYSTEM_PROGRAM_ID, process_system_instruction)

    def register_program(self, program_id: bytes, handler: ProgramHandler) -> None:
        self.programs[Pubkey(program_id)] = handler

    def get_account(self, key: bytes) -> Optional[Account]:
        account = self.accounts.get(Pubkey(key))
        return account.copy() if account is not None else None

    def set_account(self, key: bytes, account: Account) -> None:
        self.accounts[Pubkey(key)] = account.copy()

    def balance(self, key: bytes) -> int:
        account = self.accounts.get(Pubkey(key))
        return account.lamports if account else 0

    def airdrop(self, key: bytes, lamports: int) -> int:
        key = Pubkey(key)
        account = self.accounts.setdefault(key, Account(owner=Pubkey(SYSTEM_PROGRAM_ID)))
        account.lamports += lamports
        return account.lamports

    @contextmanager
    def transaction(self) -> Iterator[dict[Pubkey, Account]]:
        """Unit of work: yields a working copy, committed only on clean exit."""

        working = {key: account.copy() for key, account in self.accounts.items()}
        yield working
        self.accounts = {
            key: account for key, account in working.items() if not _is_vacant(account)
        }


class Runtime:
    """Processes transactions against a :class:`Bank`."""

    def __init__(self, bank: Bank | None = None, *, max_invoke_depth: int = MAX_INVOKE_DEPTH):
        if max_invoke_depth < 1:
            raise ValueError("max_invoke_depth must be at least 1")
        self.bank = bank or Bank()
        self.max_invoke_depth = max_invoke_depth

    def register_program(self, program_id: bytes, handler: ProgramHandler) -> None:
        self.bank.register_program(program_id, handler)

    def process_transaction(self, tx: Transaction) -> TransactionReceipt:
        tx.verify()
        signed = list(tx.signatures)
        effects: list[Effect] = []
        with self.bank.transaction() as working:
            ctx = InvokeContext(working, self.bank.programs, self.max_invoke_depth)
            for index, instruction in enumerate(tx.instructions):
                privileges = top_level_privileges(instruction.accounts, signed)
                try:
                    effects.append(ctx.process(instruction, privileges))
                except ProgramError as exc:
                    raise TransactionError(index, exc, ctx.logs, ctx.frames) from exc

        return TransactionReceipt(
            signature=tx.signature,
            logs=ctx.logs,
            grade=highest_grade(e.grade for e in effects),
            frames=ctx.frames,
            value=effects[-1].value if effects else None,
        )


__all__ = [
    "AccountInfo",
    "Bank",
    "Frame",
    "InvokeContext",
    "ProgramHandler",
    "Runtime",
    "Transaction",
    "TransactionReceipt",
]
