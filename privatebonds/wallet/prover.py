"""
Attesting prover — off-core stand-in for the proving circuit.

Runs the soundness obligations of each circuit against the private
witness in the clear and, only if all hold, signs the public inputs with
its Ed25519 key. AttestationVerifier accepts exactly those signatures.

Transfer / redeem obligations:
    (a) the prover knows the spending secret of every consumed note
    (b) every consumed note with non-zero value is a member of the tree
        at merkle_root
    (c) sum(inputs) == sum(outputs)              (transfer)
        sum(inputs) == amount + sum(change)      (redeem)
    (d) every note carries the instrument's asset_id and maturity_date
    (e) redeem: current_timestamp >= maturity_date

Zero-value inputs are padding and skip (b).
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from privatebonds.core.crypto import Ed25519KeyManager
from privatebonds.core.exceptions import ProofGenerationError
from privatebonds.core.hashing import note_nullifier
from privatebonds.core.models import Transition, TransitionKind
from privatebonds.state.commitments import compute_root
from privatebonds.verification.verifier import attestation_message
from privatebonds.wallet.keys import derive_owner_key
from privatebonds.wallet.notes import Note


@dataclass(frozen=True)
class SpendWitness:
    """A consumed note plus what proves it may be spent."""
    note:            Note
    spending_secret: str
    leaf_index:      int = -1
    path:            Sequence[str] = ()


class AttestingProver:

    def __init__(self, key_manager: Ed25519KeyManager) -> None:
        self.key_manager = key_manager

    @property
    def public_key_hex(self) -> str:
        return self.key_manager.public_key_hex

    # ── Circuits ──────────────────────────────────────────────

    def prove_issue(
        self,
        outputs:          List[Note],
        asset_id:         int,
        maturity_date:    int,
        amount:           int,
        note_ciphertexts: Sequence[str] = (),
    ) -> Transition:
        if not outputs:
            raise ProofGenerationError("issue needs at least one output note")
        self._check_instrument(outputs, asset_id, maturity_date)
        if sum(n.value for n in outputs) != amount:
            raise ProofGenerationError(
                "Issued notes do not sum to amount",
                {"amount": amount, "notes": sum(n.value for n in outputs)},
            )
        public_inputs = {
            "asset_id":        asset_id,
            "maturity_date":   maturity_date,
            "amount":          amount,
            "new_commitments": [n.commitment for n in outputs],
        }
        return self._attest(TransitionKind.ISSUE, public_inputs, note_ciphertexts)

    def prove_transfer(
        self,
        inputs:           List[SpendWitness],
        outputs:          List[Note],
        merkle_root:      str,
        asset_id:         int,
        maturity_date:    int,
        recipient:        str,
        note_ciphertexts: Sequence[str] = (),
    ) -> Transition:
        if len(inputs) != 2 or len(outputs) != 2:
            raise ProofGenerationError("transfer is 2-in / 2-out")
        nullifiers = self._check_inputs(inputs, merkle_root)
        self._check_instrument([w.note for w in inputs] + outputs, asset_id, maturity_date)

        total_in = sum(w.note.value for w in inputs)
        total_out = sum(n.value for n in outputs)
        if total_in != total_out:
            raise ProofGenerationError(
                "Value not conserved",
                {"inputs": total_in, "outputs": total_out},
            )
        public_inputs = {
            "merkle_root":     merkle_root,
            "nullifiers":      nullifiers,
            "new_commitments": [n.commitment for n in outputs],
            "asset_id":        asset_id,
            "maturity_date":   maturity_date,
            "recipient":       recipient,
        }
        return self._attest(TransitionKind.TRANSFER, public_inputs, note_ciphertexts)

    def prove_redeem(
        self,
        inputs:            List[SpendWitness],
        change:            Optional[Note],
        merkle_root:       str,
        asset_id:          int,
        maturity_date:     int,
        current_timestamp: int,
        amount:            int,
        redeemer:          str,
        note_ciphertexts:  Sequence[str] = (),
    ) -> Transition:
        if not 1 <= len(inputs) <= 2:
            raise ProofGenerationError("redeem consumes one or two notes")
        if current_timestamp < maturity_date:
            raise ProofGenerationError(
                "Instrument has not matured",
                {"current_timestamp": current_timestamp, "maturity_date": maturity_date},
            )
        outputs = [change] if change is not None else []
        nullifiers = self._check_inputs(inputs, merkle_root)
        self._check_instrument([w.note for w in inputs] + outputs, asset_id, maturity_date)

        total_in = sum(w.note.value for w in inputs)
        total_out = amount + sum(n.value for n in outputs)
        if total_in != total_out:
            raise ProofGenerationError(
                "Value not conserved",
                {"inputs": total_in, "amount": amount, "change": total_out - amount},
            )
        public_inputs = {
            "merkle_root":       merkle_root,
            "nullifiers":        nullifiers,
            "new_commitments":   [n.commitment for n in outputs],
            "asset_id":          asset_id,
            "maturity_date":     maturity_date,
            "current_timestamp": current_timestamp,
            "amount":            amount,
            "redeemer":          redeemer,
        }
        return self._attest(TransitionKind.REDEEM, public_inputs, note_ciphertexts)

    # ── Internal ──────────────────────────────────────────────

    def _check_inputs(self, inputs: List[SpendWitness], merkle_root: str) -> List[str]:
        nullifiers = []
        for witness in inputs:
            note = witness.note
            if derive_owner_key(witness.spending_secret) != note.owner_key:
                raise ProofGenerationError("Spending secret does not own the note")
            if note.value > 0:
                if witness.leaf_index < 0:
                    raise ProofGenerationError("Missing membership witness")
                root = compute_root(note.commitment, witness.leaf_index, list(witness.path))
                if root != merkle_root:
                    raise ProofGenerationError(
                        "Note is not a member of the tree at merkle_root",
                        {"leaf_index": witness.leaf_index},
                    )
            nullifiers.append(note_nullifier(note.salt, witness.spending_secret))
        return nullifiers

    @staticmethod
    def _check_instrument(notes: List[Note], asset_id: int, maturity_date: int) -> None:
        for note in notes:
            if note.asset_id != asset_id or note.maturity_date != maturity_date:
                raise ProofGenerationError(
                    "Note belongs to a different instrument",
                    {"asset_id": note.asset_id, "maturity_date": note.maturity_date},
                )

    def _attest(
        self,
        kind:             TransitionKind,
        public_inputs:    Dict[str, Any],
        note_ciphertexts: Sequence[str],
    ) -> Transition:
        proof = self.key_manager.sign(attestation_message(kind, public_inputs))
        return Transition(
            kind=             kind,
            public_inputs=    public_inputs,
            proof=            proof,
            note_ciphertexts= tuple(note_ciphertexts),
        )
