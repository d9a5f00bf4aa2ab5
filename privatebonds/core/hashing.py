"""
privatebonds/core/hashing.py

Domain-separated hash formulas.

    H(domain, p1, ..., pn) = SHA-256( JCS({"domain": domain, "inputs": [t(p1), ..., t(pn)]}) )

where t(p) tags each input with its type ("i:" for ints, "s:" for strings)
so that the integer 5 and the string "5" never collide.

Formulas (bit-exact):
    commitment     H("commitment", value, salt, owner_key, asset_id, maturity_date)
    nullifier      H("nullifier", salt, owner_secret)
    authwit inner  H("authwit-inner", caller, selector, args_hash)
    authwit outer  H("authwit-outer", consumer, chain_id, version, inner_hash)
    merkle leaf    H("merkle-leaf", commitment)
    merkle node    H("merkle-node", left, right)

Changing any formula is a protocol change: stored commitments and issued
proofs stop matching.
"""

import hashlib
from typing import Union

from privatebonds.core.canonical import canonicalize


DIGEST_HEX_LENGTH = 64
ZERO_DIGEST = "0" * DIGEST_HEX_LENGTH

HashInput = Union[int, str]


def _tag(part: HashInput) -> str:
    # bool is an int subclass; refuse it so True never hashes like 1
    if isinstance(part, bool):
        raise TypeError("hash inputs must be int or str, got bool")
    if isinstance(part, int):
        return f"i:{part}"
    if isinstance(part, str):
        return f"s:{part}"
    raise TypeError(
        f"hash inputs must be int or str, got {type(part).__name__}"
    )


def domain_hash(domain: str, *parts: HashInput) -> str:
    """Hash `parts` under `domain`. Returns 64-char lowercase hex."""
    encoded = canonicalize({
        "domain": domain,
        "inputs": [_tag(p) for p in parts],
    })
    return hashlib.sha256(encoded).hexdigest()


def is_digest(value) -> bool:
    """True if value is a 64-char lowercase hex string."""
    if not isinstance(value, str) or len(value) != DIGEST_HEX_LENGTH:
        return False
    if value != value.lower():
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True


# ── Notes ─────────────────────────────────────────────────────

def note_commitment(
    value:         int,
    salt:          str,
    owner_key:     str,
    asset_id:      int,
    maturity_date: int,
) -> str:
    return domain_hash(
        "commitment", value, salt, owner_key, asset_id, maturity_date,
    )


def note_nullifier(salt: str, owner_secret: str) -> str:
    return domain_hash("nullifier", salt, owner_secret)


# ── Merkle tree ───────────────────────────────────────────────

def merkle_leaf_hash(commitment: str) -> str:
    return domain_hash("merkle-leaf", commitment)


def merkle_node_hash(left: str, right: str) -> str:
    return domain_hash("merkle-node", left, right)


# ── Authorization witnesses ───────────────────────────────────

def function_selector(function_name: str) -> str:
    """First 4 bytes (8 hex chars) of H("selector", function_name)."""
    return domain_hash("selector", function_name)[:8]


def authwit_inner_hash(caller: str, selector: str, args_hash: str) -> str:
    return domain_hash("authwit-inner", caller, selector, args_hash)


def authwit_action_hash(
    consumer:   str,
    chain_id:   int,
    version:    int,
    inner_hash: str,
) -> str:
    return domain_hash("authwit-outer", consumer, chain_id, version, inner_hash)
