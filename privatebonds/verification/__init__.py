"""
privatebonds Verifier Boundary

The proving circuit is external; the ledger only consumes
verify(kind, public_inputs, proof) -> bool.
"""

from privatebonds.verification.schema import validate_public_inputs
from privatebonds.verification.verifier import AttestationVerifier, ProofVerifier

__all__ = ["AttestationVerifier", "ProofVerifier", "validate_public_inputs"]
