"""
Verifier boundary.

The proving circuit is external. The ledger consumes a verifier as an
injected capability:

    verify(kind, public_inputs, proof) -> bool

`kind` selects the verification key (one circuit per transition kind).
The answer is valid or invalid, never partial. The engine treats any
exception raised by a verifier as invalid.

AttestationVerifier is the reference implementation used with the
off-core AttestingProver: the prover checks every soundness obligation
against the private witness and signs

    JCS({"kind": kind, "public_inputs": public_inputs})

with its Ed25519 key; the verifier checks that signature. Swapping in a
SNARK verifier changes nothing else in the ledger.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from privatebonds.core.canonical import canonicalize
from privatebonds.core.crypto import Ed25519KeyManager
from privatebonds.core.models import TransitionKind


def attestation_message(kind: TransitionKind, public_inputs: Dict[str, Any]) -> bytes:
    return canonicalize({"kind": kind.value, "public_inputs": public_inputs})


class ProofVerifier(ABC):

    @abstractmethod
    def verify(
        self,
        kind:          TransitionKind,
        public_inputs: Dict[str, Any],
        proof:         str,
    ) -> bool:
        """Return True iff proof is valid for public_inputs under kind's circuit."""


class AttestationVerifier(ProofVerifier):

    def __init__(self, prover_public_key_hex: str) -> None:
        self.prover_public_key_hex = prover_public_key_hex

    def verify(
        self,
        kind:          TransitionKind,
        public_inputs: Dict[str, Any],
        proof:         str,
    ) -> bool:
        return Ed25519KeyManager.verify_detached(
            attestation_message(kind, public_inputs),
            proof,
            self.prover_public_key_hex,
        )

    def __repr__(self) -> str:
        return f"AttestationVerifier(prover={self.prover_public_key_hex[:16]}...)"
