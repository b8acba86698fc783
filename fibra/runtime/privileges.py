"""Account privilege tokens and their propagation across nested invocations."""
from __future__ import annotations

from typing import Iterable, Mapping

from .core import AccountMeta, Pubkey
from .errors import PrivilegeEscalation

SIGN = "sign"
WRITE = "write"


class Privilege:
    """What one invocation frame may do with one account."""

    def __init__(
        self,
        key: bytes,
        permissions: set[str] | frozenset[str] | None = None,
        *,
        history: list[str] | None = None,
    ) -> None:
        self.key = Pubkey(key)
        self.permissions = frozenset(permissions or ())
        self.history = history or []

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    @property
    def is_signer(self) -> bool:
        return SIGN in self.permissions

    @property
    def is_writable(self) -> bool:
        return WRITE in self.permissions

    def narrow(self, action: str, permission_subset: Iterable[str]) -> "Privilege":
        subset = frozenset(permission_subset)
        if not subset.issubset(self.permissions):
            missing = sorted(subset.difference(self.permissions))
            raise PrivilegeEscalation(
                f"Account {self.key.short()} cannot be granted {missing} by {action}"
            )
        return Privilege(self.key, subset, history=self.history + [action])

    def extend_signer(self, action: str) -> "Privilege":
        """Grant ``sign`` for a derived address whose seeds the caller supplied."""

        return Privilege(
            self.key, self.permissions | {SIGN}, history=self.history + [action]
        )

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"<Privilege {self.key.short()} {sorted(self.permissions)}>"


def requested_permissions(meta: AccountMeta) -> set[str]:
    wanted = set()
    if meta.is_signer:
        wanted.add(SIGN)
    if meta.is_writable:
        wanted.add(WRITE)
    return wanted


def top_level_privileges(
    metas: Iterable[AccountMeta], signed_by: Iterable[bytes]
) -> dict[Pubkey, Privilege]:
    """Privileges of a transaction's instruction; ``sign`` requires a signature."""

    signed = {Pubkey(k) for k in signed_by}
    grants: dict[Pubkey, set[str]] = {}
    for meta in metas:
        perms = grants.setdefault(meta.pubkey, set())
        if meta.is_writable:
            perms.add(WRITE)
        if meta.is_signer and meta.pubkey in signed:
            perms.add(SIGN)
    return {
        key: Privilege(key, perms, history=["transaction"])
        for key, perms in grants.items()
    }


def grant_for_invocation(
    caller: Mapping[Pubkey, Privilege],
    metas: Iterable[AccountMeta],
    derived_signers: Iterable[bytes] = (),
    *,
    action: str = "invoke",
) -> dict[Pubkey, Privilege]:
    """Compute callee privileges; never exceeds what the caller holds."""

    derived = {Pubkey(k) for k in derived_signers}
    wanted: dict[Pubkey, set[str]] = {}
    for meta in metas:
        wanted.setdefault(meta.pubkey, set()).update(requested_permissions(meta))

    granted: dict[Pubkey, Privilege] = {}
    for key, perms in wanted.items():
        base = caller.get(key)
        if base is None:
            raise PrivilegeEscalation(
                f"Account {key.short()} is not available to the calling frame"
            )
        if SIGN in perms and not base.is_signer and key in derived:
            base = base.extend_signer(f"{action}:seeds")
        granted[key] = base.narrow(action, perms)
    return granted


__all__ = [
    "Privilege",
    "SIGN",
    "WRITE",
    "grant_for_invocation",
    "requested_permissions",
    "top_level_privileges",
]
