"""
Authorization witnesses (authwits).

A principal pre-authorizes one exact action by a named third party:

    args_hash   = H("authwit-args", principal, transition_digest, nonce)
    inner_hash  = H(caller, selector, args_hash)
    action_hash = H(consumer, chain_id, version, inner_hash)
    nullifier   = H("authwit-nullifier", principal, action_hash)

consumer is the instrument ledger whose notes move, caller is the contract
invoking it (the swap orchestrator), selector names the ledger function.
Because the transition digest covers every public input, a consumer cannot
settle different commitments, nullifiers or amounts than were authorized.

Lifecycle:
    CREATED ──consume──▶ CONSUMED
       └─────cancel───▶ CANCELLED

Both terminal moves insert the same nullifier into the ledger's nullifier
set, so whichever lands first wins and the other fails.
"""

from dataclasses import dataclass

from privatebonds.core.hashing import (
    authwit_action_hash,
    authwit_inner_hash,
    domain_hash,
    function_selector,
)
from privatebonds.core.models import AuthwitStatus, Transition


def authwit_args_hash(principal: str, transition: Transition, nonce: int) -> str:
    return domain_hash("authwit-args", principal, transition.digest(), nonce)


def compute_action_hash(
    consumer:      str,
    chain_id:      int,
    version:       int,
    caller:        str,
    function_name: str,
    args_hash:     str,
) -> str:
    inner = authwit_inner_hash(caller, function_selector(function_name), args_hash)
    return authwit_action_hash(consumer, chain_id, version, inner)


def authwit_nullifier(principal: str, action_hash: str) -> str:
    return domain_hash("authwit-nullifier", principal, action_hash)


def settlement_action_hash(
    consumer:   str,
    chain_id:   int,
    version:    int,
    caller:     str,
    principal:  str,
    transition: Transition,
    nonce:      int,
) -> str:
    """
    Action hash for "caller may submit `transition` on `consumer` on behalf
    of principal". The function name is the transition kind.
    """
    return compute_action_hash(
        consumer=      consumer,
        chain_id=      chain_id,
        version=       version,
        caller=        caller,
        function_name= transition.kind.value,
        args_hash=     authwit_args_hash(principal, transition, nonce),
    )


@dataclass
class AuthwitRecord:
    principal:   str
    action_hash: str
    nonce:       int
    status:      AuthwitStatus = AuthwitStatus.CREATED

    @property
    def nullifier(self) -> str:
        return authwit_nullifier(self.principal, self.action_hash)
