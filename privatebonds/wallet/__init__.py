"""
privatebonds Wallet - off-core holder tooling.

Nothing here runs inside the ledger. Keys, notes and witnesses stay with
the holder; only commitments, nullifiers, ciphertexts and attested public
inputs reach the ledger.
"""

from privatebonds.wallet.keys import Recipient, ShieldedKeys
from privatebonds.wallet.notes import Note, decrypt_note, encrypt_note
from privatebonds.wallet.prover import AttestingProver, SpendWitness
from privatebonds.wallet.wallet import OwnedNote, Wallet

__all__ = [
    "AttestingProver",
    "Note",
    "OwnedNote",
    "Recipient",
    "ShieldedKeys",
    "SpendWitness",
    "Wallet",
    "decrypt_note",
    "encrypt_note",
]
