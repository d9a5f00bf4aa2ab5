"""
privatebonds/core/models.py

Ledger data model.

A Transition is the unit the engine accepts: a kind, the public inputs the
verifier checks, the proof, and one opaque note ciphertext per new
commitment (empty tuple when the holder delivers notes out of band).

    digest = SHA-256(JCS({"kind": kind, "public_inputs": public_inputs}))

The digest is what authorization witnesses bind to, so a consumer cannot
settle a leg with different commitments, nullifiers or amounts than the
principal authorized.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple

from privatebonds.core.canonical import canonical_hash


class TransitionKind(str, Enum):
    ISSUE    = "issue"
    TRANSFER = "transfer"
    REDEEM   = "redeem"


class SupplyPolicy(str, Enum):
    """
    FIXED      total supply minted once at initialization, never changes
    MINT_BURN  issue increments supply, redeem decrements it
    """
    FIXED     = "fixed"
    MINT_BURN = "mint_burn"


class AuthwitStatus(str, Enum):
    CREATED   = "created"
    CONSUMED  = "consumed"
    CANCELLED = "cancelled"


class EventType:
    """
    Event type constants. All events are amount-free.
    """
    NULLIFIER_PUBLISHED   = "NullifierPublished"
    COMMITMENT_ADDED      = "CommitmentAdded"
    WHITELIST_UPDATED     = "WhitelistUpdated"
    SUPPLY_POLICY_SET     = "SupplyPolicySet"
    TOTAL_SUPPLY_CHANGED  = "TotalSupplyChanged"
    OWNERSHIP_TRANSFERRED = "OwnershipTransferred"
    AUTHWIT_CREATED       = "AuthwitCreated"


VALID_EVENT_TYPES = {
    EventType.NULLIFIER_PUBLISHED,
    EventType.COMMITMENT_ADDED,
    EventType.WHITELIST_UPDATED,
    EventType.SUPPLY_POLICY_SET,
    EventType.TOTAL_SUPPLY_CHANGED,
    EventType.OWNERSHIP_TRANSFERRED,
    EventType.AUTHWIT_CREATED,
}


@dataclass(frozen=True)
class Transition:
    kind:             TransitionKind
    public_inputs:    Dict[str, Any]
    proof:            str
    note_ciphertexts: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def nullifiers(self) -> List[str]:
        return list(self.public_inputs.get("nullifiers", []))

    @property
    def new_commitments(self) -> List[str]:
        return list(self.public_inputs.get("new_commitments", []))

    def digest(self) -> str:
        return canonical_hash({
            "kind":          self.kind.value,
            "public_inputs": self.public_inputs,
        })

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind":             self.kind.value,
            "public_inputs":    self.public_inputs,
            "proof":            self.proof,
            "note_ciphertexts": list(self.note_ciphertexts),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transition":
        return cls(
            kind=             TransitionKind(data["kind"]),
            public_inputs=    dict(data["public_inputs"]),
            proof=            data["proof"],
            note_ciphertexts= tuple(data.get("note_ciphertexts", ())),
        )
