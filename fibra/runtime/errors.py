"""Exception classes raised by programs and the execution host."""

from __future__ import annotations


class ProgramError(Exception):
    """Base exception for every failure that aborts an invocation."""

    pass


class ValidationError(ProgramError):
    """Invocation rejected before any mutation took place."""

    pass


class InvalidInstructionData(ValidationError):
    """Payload is malformed (e.g. shorter than the 8-byte step count)."""

    pass


class MissingRequiredSignature(ValidationError):
    """An account that must authorize the call did not sign it."""

    pass


class IncorrectProgramId(ValidationError):
    """An account expected to be a specific program is something else."""

    pass


class AddressMismatch(ValidationError):
    """The supplied storage address differs from the derived one."""

    pass


class InvalidAccountData(ValidationError):
    """Stored record does not have the expected shape."""

    pass


class InvalidSeeds(ProgramError):
    """Seeds do not produce a valid derived address."""

    pass


class AllocationError(ProgramError):
    """Failure reported by the allocation authority."""

    pass


class AccountAlreadyInUse(AllocationError):
    """The target address already holds an account."""

    pass


class InvalidAccountDataLength(AllocationError):
    """The requested account size exceeds the allocator's limit."""

    def __init__(self, message: str, requested: int = 0, limit: int = 0) -> None:
        super().__init__(message)
        self.requested = requested
        self.limit = limit


class InsufficientFunds(AllocationError):
    """The funding party cannot cover the requested amount."""

    def __init__(self, message: str, available: int = 0, required: int = 0) -> None:
        super().__init__(message)
        self.available = available
        self.required = required


class ArithmeticOverflow(ProgramError):
    """A checked u64 operation overflowed."""

    pass


class CallDepthExceeded(ProgramError):
    """A nested invocation would exceed the host's depth ceiling."""

    def __init__(self, message: str, depth: int = 0, limit: int = 0) -> None:
        super().__init__(message)
        self.depth = depth
        self.limit = limit


class PrivilegeEscalation(ProgramError):
    """A nested invocation asked for a privilege the caller does not hold."""

    pass


class ReadonlyDataModified(ProgramError):
    """A program tried to modify an account passed as read-only."""

    pass


class ExternalAccountDataModified(ProgramError):
    """A program tried to modify an account it does not own."""

    pass


class UnknownProgram(ProgramError):
    """The instruction targets a program that is not registered."""

    pass


class SignatureFailure(ProgramError):
    """A transaction signature is missing or does not verify."""

    pass


class TransactionError(Exception):
    """A transaction was rolled back; wraps the instruction failure."""

    def __init__(
        self,
        index: int,
        cause: Exception,
        logs: list[str] | None = None,
        frames: list | None = None,
    ) -> None:
        super().__init__(f"instruction {index} failed: {cause}")
        self.index = index
        self.cause = cause
        self.logs = list(logs or [])
        self.frames = list(frames or [])


__all__ = [
    "AccountAlreadyInUse",
    "AddressMismatch",
    "AllocationError",
    "ArithmeticOverflow",
    "CallDepthExceeded",
    "ExternalAccountDataModified",
    "IncorrectProgramId",
    "InsufficientFunds",
    "InvalidAccountData",
    "InvalidAccountDataLength",
    "InvalidInstructionData",
    "InvalidSeeds",
    "MissingRequiredSignature",
    "PrivilegeEscalation",
    "ProgramError",
    "ReadonlyDataModified",
    "SignatureFailure",
    "TransactionError",
    "UnknownProgram",
    "ValidationError",
]
