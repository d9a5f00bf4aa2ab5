"""
privatebonds Settlement

- TransitionEngine: the only writer of commitments, nullifiers and supply
- SwapOrchestrator: two authwit-gated legs, all or nothing
"""

from privatebonds.settlement.engine import (
    AppliedTransition,
    PreparedTransition,
    TransitionEngine,
)
from privatebonds.settlement.swap import SwapLeg, SwapOrchestrator

__all__ = [
    "AppliedTransition",
    "PreparedTransition",
    "TransitionEngine",
    "SwapLeg",
    "SwapOrchestrator",
]
