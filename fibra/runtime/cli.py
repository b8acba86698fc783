"""Command-line interface for the fibra runtime."""
from __future__ import annotations

import argparse
import sys

from ..constants import (
    DEFAULT_AIRDROP,
    DEFAULT_PROGRAM_ID,
    KEY_FILE,
    MAX_INVOKE_DEPTH,
    OPERATOR_KEY_FILE,
    STORE_FILE,
)
from .codec import U64_MAX
from .core import Pubkey
from .crypto import ensure_keypair, verify_signature
from .errors import ProgramError, TransactionError
from .host import Runtime, Transaction
from .program import (
    StateStore,
    init_instruction,
    process_instruction,
    resume_instruction,
)
from .snapshot import (
    diff_snapshots,
    hash_snapshot,
    load_bank,
    record_run,
    save_bank,
    show_logbook,
)
from .trace import export_graphviz, visualize_calls


def _positive_int(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def parse_args(args):
    argp = argparse.ArgumentParser(description="fibra resumable computation runtime")

    mode = argp.add_mutually_exclusive_group()
    mode.add_argument(
        "--init",
        type=int,
        metavar="N",
        help="Create this identity's record and run N steps",
    )
    mode.add_argument(
        "--resume",
        action="store_true",
        help="Advance an existing record (no step count)",
    )
    argp.add_argument("--show", action="store_true", help="Print the stored state")
    argp.add_argument(
        "--address",
        action="store_true",
        help="Print the derived record address and bump",
    )
    argp.add_argument(
        "--airdrop",
        type=int,
        nargs="?",
        const=DEFAULT_AIRDROP,
        metavar="LAMPORTS",
        help=f"Credit the identity before running (default: {DEFAULT_AIRDROP})",
    )
    argp.add_argument(
        "--max-depth",
        type=_positive_int,
        default=MAX_INVOKE_DEPTH,
        help=f"Invoke stack ceiling (default: {MAX_INVOKE_DEPTH})",
    )
    argp.add_argument("--store", default=STORE_FILE, help="Accounts snapshot file")
    argp.add_argument("--keypair", default=KEY_FILE, help="Identity key file (PEM)")
    argp.add_argument(
        "--operator-key",
        default=OPERATOR_KEY_FILE,
        help="Key used to sign logbook entries",
    )
    argp.add_argument(
        "--program-id",
        default=DEFAULT_PROGRAM_ID.hex(),
        help="Program id as 64 hex characters",
    )
    argp.add_argument("--logbook", action="store_true", help="Show the run logbook")
    argp.add_argument("--verify", help="Verify the signature of a logbook hash")
    argp.add_argument("--hash", help="Compute the hash of a snapshot file")
    argp.add_argument(
        "--diff",
        nargs=2,
        metavar=("A", "B"),
        help="Compare two snapshot files",
    )
    argp.add_argument(
        "--trace",
        metavar="OUTPUT",
        help="Export the invocation graph of this run to an SVG file",
    )
    argp.add_argument(
        "--visualize",
        action="store_true",
        help="Render the invocation graph of this run with matplotlib",
    )

    return argp.parse_args(args)


def build_runtime(bank, program_id, max_depth=MAX_INVOKE_DEPTH):
    runtime = Runtime(bank, max_invoke_depth=max_depth)
    runtime.register_program(program_id, process_instruction)
    return runtime


def _print_state(store, identity):
    state = store.get(identity)
    address, bump = store.address(identity)
    if state is None:
        print(f"  record {address.hex()} (bump {bump}): absent")
        return None
    status = "terminal" if state.is_terminal else "in progress"
    print(
        f"  record {address.hex()} (bump {state.bump}): "
        f"a={state.a} b={state.b} remaining={state.remaining} [{status}]"
    )
    return state


def main(args):
    params = parse_args(args)

    if params.diff:
        diff_snapshots(params.diff[0], params.diff[1])
        return 0
    if params.hash:
        hash_snapshot(params.hash)
        return 0
    if params.logbook:
        show_logbook()
        return 0
    if params.verify:
        ok = verify_signature(
            params.verify,
            input("Signature hex: ").strip(),
            params.operator_key,
        )
        print("✓ Signature valid" if ok else "✗ Invalid signature")
        return 0 if ok else 1

    program_id = Pubkey.from_hex(params.program_id)
    keypair = ensure_keypair(params.keypair)
    identity = keypair.pubkey
    bank = load_bank(params.store)
    runtime = build_runtime(bank, program_id, params.max_depth)
    store = StateStore(bank, program_id)

    print(f"Identity: {identity.hex()}")
    if params.address:
        address, bump = store.address(identity)
        print(f"  derived address: {address.hex()}\n  bump: {bump}")

    if params.airdrop:
        balance = bank.airdrop(identity, params.airdrop)
        save_bank(bank, params.store)
        print(f"  ✓ Airdropped {params.airdrop} lamports (balance {balance})")

    if params.init is None and not params.resume:
        if params.show:
            _print_state(store, identity)
        return 0

    if params.init is not None:
        if not 0 <= params.init <= U64_MAX:
            print("  ✗ Step count must fit in an unsigned 64-bit integer")
            return 2
        instruction = init_instruction(program_id, identity, params.init)
    else:
        instruction = resume_instruction(program_id, identity)

    tx = Transaction([instruction], identity).sign(keypair)
    try:
        receipt = runtime.process_transaction(tx)
    except TransactionError as exc:
        print(f"  ✗ Transaction rolled back: {type(exc.cause).__name__}: {exc.cause}")
        for line in exc.logs:
            print("   ", line)
        if params.trace:
            export_graphviz(exc.frames, params.trace)
        return 1
    except ProgramError as exc:
        print(f"  ✗ Transaction rejected: {exc}")
        return 1

    print(f"  ✓ Transaction committed [{receipt.grade}]")
    print("  → logs:")
    for line in receipt.logs:
        print("   ", line)

    save_bank(bank, params.store)
    record_run(receipt, params.store, params.operator_key)
    _print_state(store, identity)

    if params.trace:
        export_graphviz(receipt.frames, params.trace)
    if params.visualize:
        visualize_calls(receipt.frames)
    return 0


def console_main():  # pragma: no cover
    sys.exit(main(sys.argv[1:]))


__all__ = [
    "build_runtime",
    "console_main",
    "main",
    "parse_args",
]


if __name__ == "__main__":  # pragma: no cover
    console_main()
