"""
privatebonds/core/crypto.py

Ed25519 keys for the two signers a ledger deployment has:

    sequencer   signs every event envelope it appends to the public log
    prover      signs the public inputs of each transition it attested

Signatures travel as base64url without padding; public keys as 64-char
lowercase hex. Verification needs only the public key hex, so anyone
holding the event log (or a transition) can check it.
"""

import base64
import binascii
import os
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
)


SEED_BYTES      = 32
SIGNATURE_BYTES = 64


def encode_signature(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def decode_signature(text: str) -> bytes:
    """Inverse of encode_signature. Raises ValueError on bad input."""
    try:
        return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
    except (binascii.Error, TypeError) as exc:
        raise ValueError(f"Malformed signature: {exc}") from exc


class Ed25519KeyManager:
    """
    One Ed25519 signing key.

        Ed25519KeyManager.generate()                  fresh random key
        Ed25519KeyManager.from_file(path)             PKCS8 PEM on disk
        Ed25519KeyManager.from_private_bytes(seed)    raw 32-byte seed
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        self._public_key_hex = (
            private_key.public_key()
            .public_bytes(Encoding.Raw, PublicFormat.Raw)
            .hex()
        )

    @classmethod
    def generate(cls) -> "Ed25519KeyManager":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_bytes(cls, seed: bytes) -> "Ed25519KeyManager":
        if len(seed) != SEED_BYTES:
            raise ValueError(f"Ed25519 seed must be {SEED_BYTES} bytes, got {len(seed)}")
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    @classmethod
    def from_file(cls, path: Path) -> "Ed25519KeyManager":
        """
        Load a sequencer or prover key written by save().
        Raises FileNotFoundError if missing, ValueError if not an Ed25519 PEM key.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Key file not found: {path}")
        try:
            key = load_pem_private_key(path.read_bytes(), password=None)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"Cannot read key file {path}: {exc}") from exc
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError(f"Key file {path} is not an Ed25519 private key")
        return cls(key)

    def save(self, path: Path) -> None:
        """Write the key as unencrypted PKCS8 PEM, readable by the owner only."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self._private_key.private_bytes(
            encoding=             Encoding.PEM,
            format=               PrivateFormat.PKCS8,
            encryption_algorithm= NoEncryption(),
        ))
        os.chmod(path, 0o600)

    @property
    def public_key_hex(self) -> str:
        return self._public_key_hex

    def sign(self, data: bytes) -> str:
        """Sign already-canonicalized bytes."""
        return encode_signature(self._private_key.sign(data))

    def verify(self, data: bytes, signature: str, public_key_hex: Optional[str] = None) -> bool:
        return Ed25519KeyManager.verify_detached(
            data, signature, public_key_hex or self._public_key_hex,
        )

    @staticmethod
    def verify_detached(data: bytes, signature: str, public_key_hex: str) -> bool:
        """
        True iff `signature` is a valid Ed25519 signature over `data` by
        `public_key_hex`. Malformed keys or signatures return False.
        """
        if not isinstance(public_key_hex, str) or len(public_key_hex) != 2 * SEED_BYTES:
            return False
        if not isinstance(signature, str):
            return False
        try:
            public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
            raw = decode_signature(signature)
        except ValueError:
            return False
        if len(raw) != SIGNATURE_BYTES:
            return False
        try:
            public_key.verify(raw, data)
        except InvalidSignature:
            return False
        return True

    def __repr__(self) -> str:
        return f"Ed25519KeyManager(public_key_hex={self._public_key_hex[:16]}...)"
