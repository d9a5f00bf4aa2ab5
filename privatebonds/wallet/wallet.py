"""
Holder wallet for one instrument ledger.

Scans CommitmentAdded events, trial-decrypts each ciphertext with the
holder's viewing key and keeps the notes it owns. A note is spent once its
nullifier is on the ledger. Builds issue / transfer / redeem transitions
through the attesting prover.

Transfers are always 2-in / 2-out: a single input is padded with a
zero-value dummy note, and the second output is the change note back to
the sender (zero-valued if the input matched exactly).
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from privatebonds.core.exceptions import InsufficientFunds
from privatebonds.core.models import EventType, Transition
from privatebonds.wallet.keys import Recipient, ShieldedKeys
from privatebonds.wallet.notes import Note, decrypt_note, encrypt_note
from privatebonds.wallet.prover import AttestingProver, SpendWitness

if TYPE_CHECKING:
    from privatebonds.ledger.ledger import BondLedger


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OwnedNote:
    note:       Note
    leaf_index: int


class Wallet:

    def __init__(
        self,
        address: str,
        keys:    ShieldedKeys,
        ledger:  "BondLedger",
        prover:  AttestingProver,
    ) -> None:
        self.address = address
        self.keys    = keys
        self.ledger  = ledger
        self.prover  = prover

        self._notes:  List[OwnedNote] = []
        self._seen:   set = set()
        self._cursor: int = 0

    @property
    def recipient(self) -> Recipient:
        return self.keys.recipient(self.address)

    @property
    def asset_id(self) -> int:
        return self.ledger.config.asset_id

    # ── Scanning ──────────────────────────────────────────────

    def sync(self) -> int:
        """Pick up notes added since the last sync. Returns how many were new."""
        envelopes = self.ledger.events(start=self._cursor)
        self._cursor += len(envelopes)

        found = 0
        for envelope in envelopes:
            if envelope.event_type != EventType.COMMITMENT_ADDED:
                continue
            payload = envelope.payload
            ciphertext = payload.get("ciphertext")
            if not ciphertext or payload["commitment"] in self._seen:
                continue
            note = decrypt_note(ciphertext, self.keys.viewing_key)
            if note is None:
                continue
            if (note.owner_key != self.keys.owner_key
                    or note.commitment != payload["commitment"]
                    or note.asset_id != self.asset_id):
                logger.warning(
                    "Discarding note at leaf %d: does not match its commitment",
                    payload["leaf_index"],
                )
                continue
            self._seen.add(payload["commitment"])
            self._notes.append(OwnedNote(note, payload["leaf_index"]))
            found += 1
        return found

    def notes(self) -> List[OwnedNote]:
        return list(self._notes)

    def unspent_notes(self) -> List[OwnedNote]:
        self.sync()
        return [
            owned for owned in self._notes
            if not self.ledger.is_nullified(self.keys.nullifier(owned.note.salt))
        ]

    def balance(self) -> int:
        return sum(owned.note.value for owned in self.unspent_notes())

    # ── Transition builders ───────────────────────────────────

    def build_issue(
        self,
        amount:        int,
        recipient:     Optional[Recipient] = None,
        maturity_date: Optional[int] = None,
    ) -> Transition:
        """
        Mint `amount` into one note for `recipient` (default: this wallet).
        Pass maturity_date for the genesis issue, before the ledger has one.
        """
        recipient = recipient or self.recipient
        maturity = self.ledger.maturity_date if maturity_date is None else maturity_date
        note = Note.create(amount, recipient.owner_key, self.asset_id, maturity)
        return self.prover.prove_issue(
            outputs=          [note],
            asset_id=         self.asset_id,
            maturity_date=    maturity,
            amount=           amount,
            note_ciphertexts= [encrypt_note(note, recipient.viewing_public_key)],
        )

    def build_transfer(self, recipient: Recipient, amount: int) -> Transition:
        self.sync()
        selected = self._select(amount)
        maturity = self.ledger.maturity_date
        witnesses = [self._witness(owned) for owned in selected]
        while len(witnesses) < 2:
            dummy = Note.create(0, self.keys.owner_key, self.asset_id, maturity)
            witnesses.append(SpendWitness(dummy, self.keys.spending_secret))

        change = sum(owned.note.value for owned in selected) - amount
        outputs = [
            Note.create(amount, recipient.owner_key, self.asset_id, maturity),
            Note.create(change, self.keys.owner_key, self.asset_id, maturity),
        ]
        return self.prover.prove_transfer(
            inputs=           witnesses,
            outputs=          outputs,
            merkle_root=      self.ledger.root,
            asset_id=         self.asset_id,
            maturity_date=    maturity,
            recipient=        recipient.address,
            note_ciphertexts= [
                encrypt_note(outputs[0], recipient.viewing_public_key),
                encrypt_note(outputs[1], self.keys.viewing_public_key),
            ],
        )

    def build_redeem(self, amount: int, current_timestamp: int) -> Transition:
        """Burn `amount`; any remainder of the consumed notes comes back as one change note."""
        self.sync()
        selected = self._select(amount)
        maturity = self.ledger.maturity_date
        change_value = sum(owned.note.value for owned in selected) - amount
        change = None
        ciphertexts = []
        if change_value > 0:
            change = Note.create(change_value, self.keys.owner_key, self.asset_id, maturity)
            ciphertexts.append(encrypt_note(change, self.keys.viewing_public_key))
        return self.prover.prove_redeem(
            inputs=            [self._witness(owned) for owned in selected],
            change=            change,
            merkle_root=       self.ledger.root,
            asset_id=          self.asset_id,
            maturity_date=     maturity,
            current_timestamp= current_timestamp,
            amount=            amount,
            redeemer=          self.address,
            note_ciphertexts=  ciphertexts,
        )

    # ── Internal ──────────────────────────────────────────────

    def _select(self, amount: int) -> List[OwnedNote]:
        """Smallest single note covering amount, else the two largest notes."""
        if amount <= 0:
            raise ValueError("amount must be positive")
        candidates = sorted(
            (o for o in self.unspent_notes() if o.note.value > 0),
            key=lambda o: o.note.value,
        )
        for owned in candidates:
            if owned.note.value >= amount:
                return [owned]
        if len(candidates) >= 2 and sum(o.note.value for o in candidates[-2:]) >= amount:
            return candidates[-2:]
        raise InsufficientFunds(
            "Unspent notes cannot cover amount with two inputs",
            {"amount": amount, "balance": sum(o.note.value for o in candidates)},
        )

    def _witness(self, owned: OwnedNote) -> SpendWitness:
        return SpendWitness(
            note=            owned.note,
            spending_secret= self.keys.spending_secret,
            leaf_index=      owned.leaf_index,
            path=            tuple(self.ledger.merkle_path(owned.leaf_index)),
        )
