"""
Notes and note encryption.

A note is the private record behind a commitment. The ledger only ever
sees the commitment and, optionally, the note encrypted to the
recipient's viewing key:

    ephemeral X25519 key pair (e, E)
    shared  = X25519(e, recipient viewing public key)
    key     = HKDF-SHA256(shared, info="privatebonds/note/v1")
    ct      = ChaCha20-Poly1305(key, nonce, JCS(note), aad=E)
    wire    = hex(E || nonce || ct)
"""

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.x25519 import (
    X25519PrivateKey,
    X25519PublicKey,
)
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from privatebonds.core.canonical import canonicalize
from privatebonds.core.hashing import note_commitment


SALT_BYTES  = 32
NONCE_BYTES = 12
KEY_BYTES   = 32
HKDF_INFO   = b"privatebonds/note/v1"


@dataclass(frozen=True)
class Note:
    value:         int
    salt:          str
    owner_key:     str
    asset_id:      int
    maturity_date: int

    @classmethod
    def create(
        cls,
        value:         int,
        owner_key:     str,
        asset_id:      int,
        maturity_date: int,
    ) -> "Note":
        if value < 0:
            raise ValueError("note value must be non-negative")
        return cls(
            value=         value,
            salt=          os.urandom(SALT_BYTES).hex(),
            owner_key=     owner_key,
            asset_id=      asset_id,
            maturity_date= maturity_date,
        )

    @property
    def commitment(self) -> str:
        return note_commitment(
            self.value, self.salt, self.owner_key, self.asset_id, self.maturity_date,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value":         self.value,
            "salt":          self.salt,
            "owner_key":     self.owner_key,
            "asset_id":      self.asset_id,
            "maturity_date": self.maturity_date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        return cls(
            value=         int(data["value"]),
            salt=          data["salt"],
            owner_key=     data["owner_key"],
            asset_id=      int(data["asset_id"]),
            maturity_date= int(data["maturity_date"]),
        )


def _note_key(shared_secret: bytes) -> bytes:
    return HKDF(
        algorithm= hashes.SHA256(),
        length=    KEY_BYTES,
        salt=      None,
        info=      HKDF_INFO,
    ).derive(shared_secret)


def encrypt_note(note: Note, viewing_public_key: str) -> str:
    """Encrypt `note` to a recipient's viewing public key (hex)."""
    ephemeral = X25519PrivateKey.generate()
    ephemeral_public = ephemeral.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    shared = ephemeral.exchange(
        X25519PublicKey.from_public_bytes(bytes.fromhex(viewing_public_key))
    )
    nonce = os.urandom(NONCE_BYTES)
    ciphertext = ChaCha20Poly1305(_note_key(shared)).encrypt(
        nonce, canonicalize(note.to_dict()), ephemeral_public,
    )
    return (ephemeral_public + nonce + ciphertext).hex()


def decrypt_note(ciphertext: str, viewing_key: X25519PrivateKey) -> Optional[Note]:
    """
    Trial-decrypt a ciphertext. Returns None when it was not encrypted to
    this viewing key or is malformed.
    """
    try:
        raw = bytes.fromhex(ciphertext)
    except (TypeError, ValueError):
        return None
    if len(raw) <= KEY_BYTES + NONCE_BYTES:
        return None

    ephemeral_public = raw[:KEY_BYTES]
    nonce = raw[KEY_BYTES:KEY_BYTES + NONCE_BYTES]
    body  = raw[KEY_BYTES + NONCE_BYTES:]
    try:
        shared = viewing_key.exchange(X25519PublicKey.from_public_bytes(ephemeral_public))
        plaintext = ChaCha20Poly1305(_note_key(shared)).decrypt(nonce, body, ephemeral_public)
        return Note.from_dict(json.loads(plaintext))
    except (InvalidTag, ValueError, KeyError, TypeError):
        return None
