"""
privatebonds/core/canonical.py

Canonical JSON Encoding — RFC 8785 (JCS)

Every hashed or signed structure in privatebonds goes through this module:
domain hashes, transition digests, prover attestations, event chaining.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import hashlib

try:
    import jcs as _jcs
except ImportError as exc:
    raise ImportError(
        "privatebonds requires the 'jcs' package for RFC 8785 compliance.\n"
        "Install with: pip install jcs\n"
        f"Original error: {exc}"
    ) from exc


def canonicalize(obj) -> bytes:
    """
    Encode a JSON-primitive structure to RFC 8785 canonical bytes.

    Output is deterministic regardless of key insertion order.
    Values must be str, int, bool, None, list or dict. Amounts and
    timestamps are ints; digests are lowercase hex strings.
    """
    return _jcs.canonicalize(obj)


def canonical_hash(obj) -> str:
    """
    SHA-256 of the RFC 8785 canonical form.

    Returns:
        Lowercase hex-encoded SHA-256 digest (64 characters).
    """
    return hashlib.sha256(canonicalize(obj)).hexdigest()
