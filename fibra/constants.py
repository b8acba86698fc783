"""Shared constant values for the fibra runtime."""

import hashlib

EFFECT_GRADES = ["pure", "state", "sys"]

GRADE_COLORS = {
    "pure": "#8BC34A",
    "state": "#FFEB3B",
    "sys": "#9575CD",
    "failed": "#E57373",
}

SEED = b"fib"

# a(8) + b(8) + remaining(8) + bump(1)
DATA_LEN = 25

ACCOUNT_STORAGE_OVERHEAD = 128
LAMPORTS_PER_BYTE_YEAR = 3_480
EXEMPTION_THRESHOLD_YEARS = 2

# Largest account the system allocator will create.
MAX_PERMITTED_DATA_LENGTH = 10 * 1024 * 1024

SYSTEM_PROGRAM_ID = bytes(32)

# One top-level call plus four nested invocations.
MAX_INVOKE_DEPTH = 5

MAX_SEEDS = 16
MAX_SEED_LEN = 32
PDA_MARKER = b"ProgramDerivedAddress"

DEFAULT_PROGRAM_ID = hashlib.sha256(b"fibra:resumable-recurrence").digest()

DEFAULT_AIRDROP = 10_000_000

STORE_FILE = "fibra.accounts.json"
LOGBOOK_FILE = "fibra.logbook.jsonl"
KEY_FILE = "fibra_identity.pem"
OPERATOR_KEY_FILE = "fibra_operator.pem"

__all__ = [
    "EFFECT_GRADES",
    "GRADE_COLORS",
    "SEED",
    "DATA_LEN",
    "ACCOUNT_STORAGE_OVERHEAD",
    "LAMPORTS_PER_BYTE_YEAR",
    "EXEMPTION_THRESHOLD_YEARS",
    "MAX_PERMITTED_DATA_LENGTH",
    "SYSTEM_PROGRAM_ID",
    "MAX_INVOKE_DEPTH",
    "MAX_SEEDS",
    "MAX_SEED_LEN",
    "PDA_MARKER",
    "DEFAULT_PROGRAM_ID",
    "DEFAULT_AIRDROP",
    "STORE_FILE",
    "LOGBOOK_FILE",
    "KEY_FILE",
    "OPERATOR_KEY_FILE",
]
