"""Accounts snapshots and the signed run logbook."""

from __future__ import annotations

from datetime import datetime, timezone
import hashlib
import json
from pathlib import Path
import sys

from ..constants import LOGBOOK_FILE, OPERATOR_KEY_FILE
from .core import Account, Pubkey
from .host import Bank

from . import crypto as _crypto

SNAPSHOT_VERSION = "1"


def _account_to_dict(account: Account) -> dict:
    return {
        "lamports": account.lamports,
        "data": bytes(account.data).hex(),
        "owner": account.owner.hex(),
        "executable": account.executable,
    }


def _account_from_dict(entry: dict) -> Account:
    return Account(
        lamports=int(entry["lamports"]),
        data=bytearray.fromhex(entry.get("data", "")),
        owner=Pubkey.from_hex(entry["owner"]),
        executable=bool(entry.get("executable", False)),
    )


def _accounts_digest(accounts: dict) -> str:
    data = json.dumps(accounts, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def build_snapshot_document(bank: Bank) -> dict:
    """In-memory snapshot of every account in ``bank``."""

    accounts = {
        key.hex(): _account_to_dict(account)
        for key, account in sorted(bank.accounts.items())
    }
    return {
        "fibra_version": SNAPSHOT_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "accounts": accounts,
        "digest": _accounts_digest(accounts),
    }


def write_snapshot_document(doc, filename):
    """Persist a snapshot document to disk."""

    with open(filename, "w", encoding="utf-8") as f:
        json.dump(doc, f, indent=2)
    return doc


def save_bank(bank: Bank, filename):
    return write_snapshot_document(build_snapshot_document(bank), filename)


def verify_snapshot_document(doc):
    """Ensure the embedded digest matches the stored accounts."""

    if "accounts" not in doc:
        raise ValueError("Snapshot missing accounts table")
    expected = _accounts_digest(doc["accounts"])
    if doc.get("digest") != expected:
        raise ValueError("Snapshot digest mismatch")
    return True


def load_snapshot(filename):
    with open(filename, "r", encoding="utf-8") as f:
        doc = json.load(f)
    verify_snapshot_document(doc)
    return doc


def restore_bank(doc) -> Bank:
    """Rebuild a :class:`Bank` from a verified snapshot document."""

    verify_snapshot_document(doc)
    accounts = {
        Pubkey.from_hex(key): _account_from_dict(entry)
        for key, entry in doc["accounts"].items()
    }
    return Bank(accounts)


def load_bank(filename) -> Bank:
    """Load ``filename`` or start an empty bank when it does not exist yet."""

    if not Path(filename).exists():
        return Bank()
    return restore_bank(load_snapshot(filename))


def canonicalize_snapshot(doc):
    """Drop volatile fields so equal account sets hash identically."""

    def sort_dict(d):
        if isinstance(d, dict):
            return {k: sort_dict(v) for k, v in sorted(d.items())}
        elif isinstance(d, list):
            return [sort_dict(x) for x in d]
        else:
            return d

    return sort_dict({k: v for k, v in doc.items() if k != "timestamp"})


def hash_snapshot_document(doc):
    canon = canonicalize_snapshot(doc)
    data = json.dumps(canon, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def hash_snapshot(filename):
    doc = load_snapshot(filename)
    h = hash_snapshot_document(doc)
    print(f"SHA256({filename}) = {h}")
    return h


def diff_snapshots(file_a, file_b):
    """Report accounts that were added, removed or changed between two snapshots."""

    a = load_snapshot(file_a)
    b = load_snapshot(file_b)
    ha, hb = hash_snapshot_document(a), hash_snapshot_document(b)
    if ha == hb:
        print(f"✓ Snapshots are identical ({ha})")
        return []

    print(f"✗ Snapshots differ\n  {file_a}: {ha}\n  {file_b}: {hb}")
    changes = []
    keys = sorted(set(a["accounts"]) | set(b["accounts"]))
    for key in keys:
        before = a["accounts"].get(key)
        after = b["accounts"].get(key)
        if before == after:
            continue
        if before is None:
            kind = "added"
        elif after is None:
            kind = "removed"
        else:
            kind = "changed"
        changes.append({"account": key, "kind": kind, "before": before, "after": after})
        print(f"  • {kind}: {key[:16]}…")
        if kind == "changed":
            for field_name in ("lamports", "owner", "data"):
                if before[field_name] != after[field_name]:
                    print(f"    - {field_name}: {before[field_name]}\n    + {field_name}: {after[field_name]}")
    return changes


def record_run(receipt, snapshot_filename, key_file=OPERATOR_KEY_FILE):
    """Append a committed transaction to the logbook, signed."""

    sha = hash_snapshot_document(load_snapshot(snapshot_filename))
    runtime_mod = sys.modules.get("fibra.runtime")
    signer = getattr(runtime_mod, "sign_hash", _crypto.sign_hash)
    sig = signer(sha, key_file)

    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "transaction": receipt.signature,
        "snapshot": str(snapshot_filename),
        "hash": sha,
        "signature": sig,
        "grade": receipt.grade,
        "frames": len(receipt.frames),
        "log_length": len(receipt.logs),
        "first_log": receipt.logs[0] if receipt.logs else None,
        "last_log": receipt.logs[-1] if receipt.logs else None,
    }

    logbook_path = getattr(runtime_mod, "LOGBOOK_FILE", LOGBOOK_FILE)
    with open(logbook_path, "a", encoding="utf-8") as f:
        f.write(json.dumps(entry) + "\n")

    print(f"  📜 Recorded and signed run → {logbook_path}")
    return entry


def read_logbook(limit=10):
    logbook_path = getattr(sys.modules.get("fibra.runtime"), "LOGBOOK_FILE", LOGBOOK_FILE)
    try:
        with open(logbook_path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except FileNotFoundError:
        return []
    return [json.loads(line) for line in lines[-limit:] if line.strip()]


def show_logbook(limit=10):
    """Display recent logbook entries."""

    entries = read_logbook(limit)
    if not entries:
        print("No logbook yet.")
        return
    print(f"\nfibra logbook — last {len(entries)} entries:")
    for e in reversed(entries):
        print(
            f"• {e['timestamp']}  tx {e['transaction'][:12]}…  [{e['grade']}]  {e['hash'][:12]}…"
        )
        if e["first_log"] and e["last_log"]:
            print(f"    log: {e['first_log']} → {e['last_log']}")


__all__ = [
    "SNAPSHOT_VERSION",
    "build_snapshot_document",
    "canonicalize_snapshot",
    "diff_snapshots",
    "hash_snapshot",
    "hash_snapshot_document",
    "load_bank",
    "load_snapshot",
    "read_logbook",
    "record_run",
    "restore_bank",
    "save_bank",
    "show_logbook",
    "verify_snapshot_document",
    "write_snapshot_document",
]
