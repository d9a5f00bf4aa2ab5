"""
privatebonds/__init__.py

privatebonds: note-based private settlement ledger for fixed-term bonds

Amounts and balances stay private; who may hold stays public.

    BondLedger        entry points for one instrument
    SwapOrchestrator  atomic two-leg settlement gated by authwits
    Wallet            off-core holder tooling (keys, notes, prover)
"""

__version__ = "0.1.0"

from privatebonds.core.config import LedgerConfig
from privatebonds.core.exceptions import (
    PrivateBondsError,
    TransitionRejected,
)
from privatebonds.core.models import (
    AuthwitStatus,
    EventType,
    SupplyPolicy,
    Transition,
    TransitionKind,
)
from privatebonds.ledger.ledger import BondLedger
from privatebonds.settlement.swap import SwapLeg, SwapOrchestrator
from privatebonds.verification.verifier import AttestationVerifier, ProofVerifier

__all__ = [
    # Ledger
    "BondLedger",
    "LedgerConfig",
    "SwapLeg",
    "SwapOrchestrator",
    # Model
    "AuthwitStatus",
    "EventType",
    "SupplyPolicy",
    "Transition",
    "TransitionKind",
    # Verifier boundary
    "AttestationVerifier",
    "ProofVerifier",
    # Errors
    "PrivateBondsError",
    "TransitionRejected",
]
