"""
privatebonds State - owned ledger state

Components:
- CommitmentStore: append-only Merkle accumulator with root history
- NullifierSet: double-spend and replay guard
- LedgerState: the one struct the transition engine mutates
"""

from privatebonds.state.commitments import CommitmentStore, compute_root
from privatebonds.state.nullifiers import NullifierSet
from privatebonds.state.state import LedgerState

__all__ = ["CommitmentStore", "NullifierSet", "LedgerState", "compute_root"]
