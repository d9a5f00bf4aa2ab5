"""
privatebonds Authorization Witnesses

A principal authorizes one exact action by one named caller; the
authwit is consumed or cancelled exactly once through the nullifier set.
"""

from privatebonds.authwit.authwit import (
    AuthwitRecord,
    authwit_nullifier,
    compute_action_hash,
    settlement_action_hash,
)

__all__ = [
    "AuthwitRecord",
    "authwit_nullifier",
    "compute_action_hash",
    "settlement_action_hash",
]
