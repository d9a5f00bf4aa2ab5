"""
Holder key material.

    seed (32 random bytes)
      ├── spending secret  H("spending-key", seed)      spends notes
      │     └── owner key  H("owner-key", secret)       public, goes into notes
      └── viewing key      X25519 from H("viewing-key", seed)
                                                        decrypts notes, cannot spend

The viewing key can be handed to an auditor without granting spending
authority.
"""

import os
from dataclasses import dataclass

from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey

from privatebonds.core.hashing import domain_hash, note_nullifier


SEED_LENGTH = 32


def derive_owner_key(spending_secret: str) -> str:
    return domain_hash("owner-key", spending_secret)


@dataclass(frozen=True)
class Recipient:
    """What a sender needs to pay someone: their address and public keys."""
    address:            str
    owner_key:          str
    viewing_public_key: str


class ShieldedKeys:

    def __init__(self, seed: bytes) -> None:
        if not isinstance(seed, bytes) or len(seed) != SEED_LENGTH:
            raise ValueError(f"seed must be {SEED_LENGTH} bytes")
        self._seed = seed
        self.spending_secret: str = domain_hash("spending-key", seed.hex())
        self.owner_key:       str = derive_owner_key(self.spending_secret)
        self.viewing_key: X25519PrivateKey = X25519PrivateKey.from_private_bytes(
            bytes.fromhex(domain_hash("viewing-key", seed.hex()))
        )

    @classmethod
    def generate(cls) -> "ShieldedKeys":
        return cls(os.urandom(SEED_LENGTH))

    @classmethod
    def from_hex(cls, seed_hex: str) -> "ShieldedKeys":
        return cls(bytes.fromhex(seed_hex))

    @property
    def viewing_public_key(self) -> str:
        return self.viewing_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex()

    def nullifier(self, salt: str) -> str:
        return note_nullifier(salt, self.spending_secret)

    def recipient(self, address: str) -> Recipient:
        return Recipient(
            address=            address,
            owner_key=          self.owner_key,
            viewing_public_key= self.viewing_public_key,
        )

    def __repr__(self) -> str:
        return f"ShieldedKeys(owner_key={self.owner_key[:16]}...)"
