"""
Public-input schemas, one per transition kind.

    issue     asset_id, maturity_date, amount, new_commitments[>=1]
    transfer  merkle_root, nullifiers[2], new_commitments[2],
              asset_id, maturity_date, recipient
    redeem    merkle_root, nullifiers[1..2], new_commitments[0..1],
              asset_id, maturity_date, current_timestamp, amount, redeemer

Key sets are exact: a missing or extra key is a SchemaError. The verifier
is only ever handed inputs that passed this check.
"""

from typing import Any, Dict, List, Tuple

from privatebonds.core.exceptions import SchemaError
from privatebonds.core.hashing import is_digest
from privatebonds.core.models import TransitionKind


# kind → (required keys, (min, max) nullifiers, (min, max) new commitments)
_SCHEMAS: Dict[TransitionKind, Tuple[frozenset, Tuple[int, int], Tuple[int, int]]] = {
    TransitionKind.ISSUE: (
        frozenset({"asset_id", "maturity_date", "amount", "new_commitments"}),
        (0, 0),
        (1, 64),
    ),
    TransitionKind.TRANSFER: (
        frozenset({
            "merkle_root", "nullifiers", "new_commitments",
            "asset_id", "maturity_date", "recipient",
        }),
        (2, 2),
        (2, 2),
    ),
    TransitionKind.REDEEM: (
        frozenset({
            "merkle_root", "nullifiers", "new_commitments", "asset_id",
            "maturity_date", "current_timestamp", "amount", "redeemer",
        }),
        (1, 2),
        (0, 1),
    ),
}


def _is_uint(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _digest_list(pi: Dict[str, Any], key: str, bounds: Tuple[int, int]) -> List[str]:
    values = pi.get(key, [])
    if not isinstance(values, list):
        raise SchemaError(f"{key} must be a list", {"type": type(values).__name__})
    low, high = bounds
    if not low <= len(values) <= high:
        raise SchemaError(
            f"{key} has wrong length",
            {"expected": f"{low}..{high}", "got": len(values)},
        )
    for v in values:
        if not is_digest(v):
            raise SchemaError(f"{key} entries must be 64-char hex digests", {"value": v})
    return values


def validate_public_inputs(kind: TransitionKind, public_inputs: Dict[str, Any]) -> None:
    """Raise SchemaError unless public_inputs matches the schema for kind."""
    if not isinstance(public_inputs, dict):
        raise SchemaError("public_inputs must be a dict")
    required, nullifier_bounds, commitment_bounds = _SCHEMAS[kind]

    keys = set(public_inputs)
    if keys != required:
        raise SchemaError(
            f"public inputs do not match the {kind.value} schema",
            {
                "missing": sorted(required - keys),
                "unexpected": sorted(keys - required),
            },
        )

    for key in ("asset_id", "maturity_date", "amount", "current_timestamp"):
        if key in public_inputs and not _is_uint(public_inputs[key]):
            raise SchemaError(f"{key} must be a non-negative int", {key: public_inputs[key]})

    if "amount" in public_inputs and public_inputs["amount"] == 0:
        raise SchemaError("amount must be positive")

    for key in ("recipient", "redeemer"):
        if key in public_inputs:
            value = public_inputs[key]
            if not isinstance(value, str) or not value:
                raise SchemaError(f"{key} must be a non-empty address string")

    if "merkle_root" in public_inputs and not is_digest(public_inputs["merkle_root"]):
        raise SchemaError("merkle_root must be a 64-char hex digest")

    if "nullifiers" in public_inputs:
        _digest_list(public_inputs, "nullifiers", nullifier_bounds)
    _digest_list(public_inputs, "new_commitments", commitment_bounds)
