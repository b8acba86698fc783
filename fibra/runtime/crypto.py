"""Ed25519 identities and logbook signatures."""
from __future__ import annotations

from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from ..constants import OPERATOR_KEY_FILE
from .core import Pubkey


class Keypair:
    """An Ed25519 signing identity."""

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        raw = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self.pubkey = Pubkey(raw)

    @classmethod
    def generate(cls) -> "Keypair":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> "Keypair":
        """Deterministic keypair from a 32-byte secret seed."""

        return cls(Ed25519PrivateKey.from_private_bytes(bytes(seed)))

    def sign(self, message: bytes) -> bytes:
        return self._private_key.sign(message)

    def to_pem(self) -> bytes:
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    @classmethod
    def from_pem(cls, data: bytes) -> "Keypair":
        key = serialization.load_pem_private_key(data, password=None)
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError("Key file does not contain an Ed25519 private key")
        return cls(key)

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"<Keypair {self.pubkey.short()}>"


def verify_ed25519(pubkey: bytes, signature: bytes, message: bytes) -> bool:
    try:
        Ed25519PublicKey.from_public_bytes(bytes(pubkey)).verify(signature, message)
    except (InvalidSignature, ValueError):
        return False
    return True


def ensure_keypair(path=OPERATOR_KEY_FILE) -> Keypair:
    """Load the keypair stored at ``path``, creating it on first use."""

    path = Path(path)
    try:
        return Keypair.from_pem(path.read_bytes())
    except FileNotFoundError:
        print(f"🔐 Generating new keypair → {path}")
        keypair = Keypair.generate()
        if path.parent and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(keypair.to_pem())
        return keypair


def sign_hash(sha256_hex, key_file=OPERATOR_KEY_FILE):
    """Sign a SHA256 hex digest with the operator key."""

    keypair = ensure_keypair(key_file)
    return keypair.sign(sha256_hex.encode()).hex()


def verify_signature(sha256_hex, signature_hex, key_file=OPERATOR_KEY_FILE):
    """Verify a logbook signature against the operator key."""

    keypair = Keypair.from_pem(Path(key_file).read_bytes())
    try:
        signature = bytes.fromhex(signature_hex)
    except ValueError:
        return False
    return verify_ed25519(keypair.pubkey, signature, sha256_hex.encode())


__all__ = [
    "Keypair",
    "ensure_keypair",
    "sign_hash",
    "verify_ed25519",
    "verify_signature",
]
