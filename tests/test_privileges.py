import pytest

from fibra.runtime.core import AccountMeta, Pubkey
from fibra.runtime.errors import PrivilegeEscalation
from fibra.runtime.privileges import (
    SIGN,
    WRITE,
    Privilege,
    grant_for_invocation,
    requested_permissions,
    top_level_privileges,
)


def test_narrow_keeps_history_and_subset():
    key = Pubkey.new_unique()
    priv = Privilege(key, {SIGN, WRITE}, history=["transaction"])

    narrowed = priv.narrow("invoke", {WRITE})

    assert narrowed.is_writable and not narrowed.is_signer
    assert narrowed.history == ["transaction", "invoke"]
    assert priv.permissions == frozenset({SIGN, WRITE})


def test_narrow_refuses_escalation():
    priv = Privilege(Pubkey.new_unique(), {WRITE})

    with pytest.raises(PrivilegeEscalation, match="sign"):
        priv.narrow("invoke", {SIGN})


def test_extend_signer_adds_sign():
    priv = Privilege(Pubkey.new_unique(), {WRITE})

    extended = priv.extend_signer("seeds")

    assert extended.is_signer and extended.is_writable
    assert extended.history == ["seeds"]


def test_requested_permissions_follow_meta_flags():
    key = Pubkey.new_unique()

    assert requested_permissions(AccountMeta(key, True, True)) == {SIGN, WRITE}
    assert requested_permissions(AccountMeta.readonly(key)) == set()


def test_top_level_signer_flag_requires_actual_signature():
    signed, unsigned = Pubkey.new_unique(), Pubkey.new_unique()
    metas = [
        AccountMeta.writable(signed, signer=True),
        AccountMeta.readonly(unsigned, signer=True),
    ]

    grants = top_level_privileges(metas, [signed])

    assert grants[signed].is_signer and grants[signed].is_writable
    assert not grants[unsigned].is_signer
    assert not grants[unsigned].is_writable


def test_invocation_cannot_gain_privileges():
    key = Pubkey.new_unique()
    caller = {key: Privilege(key, {WRITE})}

    with pytest.raises(PrivilegeEscalation):
        grant_for_invocation(caller, [AccountMeta.writable(key, signer=True)])


def test_invocation_can_sign_for_derived_address():
    key = Pubkey.new_unique()
    caller = {key: Privilege(key, {WRITE})}

    grants = grant_for_invocation(
        caller, [AccountMeta.writable(key, signer=True)], [key], action="alloc"
    )

    assert grants[key].is_signer
    assert grants[key].history == ["alloc:seeds", "alloc"]


def test_invocation_rejects_accounts_unknown_to_caller():
    with pytest.raises(PrivilegeEscalation, match="not available"):
        grant_for_invocation({}, [AccountMeta.readonly(Pubkey.new_unique())])


def test_invocation_may_drop_privileges():
    key = Pubkey.new_unique()
    caller = {key: Privilege(key, {SIGN, WRITE})}

    grants = grant_for_invocation(caller, [AccountMeta.readonly(key)])

    assert grants[key].permissions == frozenset()
