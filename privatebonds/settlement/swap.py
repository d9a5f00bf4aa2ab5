"""
Atomic swap orchestrator.

Composes two transitions (leg A, leg B), each gated by its own authwit,
into one all-or-nothing unit:

    1. recompute each leg's action hash from the call about to be made and
       compare it with the hash the principal committed to
    2. check each authwit exists and is unconsumed
    3. prepare both legs (every engine check, no mutation)
    4. run each ledger's commit checks (epoch, batch nullifiers, supply,
       tree capacity)
    5. apply both legs

Any failure in 1–4 leaves both ledgers untouched. Both ledgers' locks are
held from step 1 through step 5.

Delivery-versus-payment uses a transfer as leg A; maturity redemption uses
a redeem as leg A. Leg B is the payment transfer in both cases.
"""

import logging
from contextlib import ExitStack
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple

from privatebonds.authwit.authwit import settlement_action_hash
from privatebonds.core.exceptions import (
    AuthwitMismatch,
    DuplicateNullifier,
    SchemaError,
)
from privatebonds.core.models import Transition, TransitionKind
from privatebonds.settlement.engine import AppliedTransition, PreparedTransition

if TYPE_CHECKING:
    from privatebonds.ledger.ledger import BondLedger


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwapLeg:
    """
    One side of a swap.

    ledger       the BondLedger whose notes move (the authwit consumer)
    principal    the holder who authorized the leg
    transition   transfer or redeem, proven by the principal
    nonce        the nonce the principal committed with
    action_hash  the action hash the principal created an authwit for
    recipient    transfer legs: the counterparty receiving the notes
    amount       redeem legs: the public redemption amount
    """
    ledger:      "BondLedger"
    principal:   str
    transition:  Transition
    nonce:       int
    action_hash: str
    recipient:   Optional[str] = None
    amount:      Optional[int] = None


class SwapOrchestrator:

    def __init__(self, address: str) -> None:
        if not address:
            raise SchemaError("orchestrator address must be non-empty")
        self.address = address

    def action_hash_for(self, ledger: "BondLedger", principal: str, transition: Transition, nonce: int) -> str:
        """The action hash a principal must authorize for this orchestrator to settle `transition`."""
        return settlement_action_hash(
            consumer=   ledger.config.contract_address,
            chain_id=   ledger.config.chain_id,
            version=    ledger.config.version,
            caller=     self.address,
            principal=  principal,
            transition= transition,
            nonce=      nonce,
        )

    def execute_swap(
        self,
        caller: str,
        leg_a:  SwapLeg,
        leg_b:  SwapLeg,
    ) -> Tuple[AppliedTransition, AppliedTransition]:
        """
        Settle both legs or neither. `caller` is whoever submits the swap;
        authority to move notes comes only from the two authwits.
        """
        legs = [leg_a, leg_b]
        ledgers = sorted(
            {id(leg.ledger): leg.ledger for leg in legs}.values(),
            key=lambda lg: lg.config.contract_address,
        )

        with ExitStack() as stack:
            for ledger in ledgers:
                stack.enter_context(ledger.engine.lock)

            prepared = [self._prepare_leg(leg) for leg in legs]

            if leg_a.ledger is leg_b.ledger:
                applied = leg_a.ledger.engine.commit(prepared)
            else:
                self._check_disjoint(prepared)
                leg_a.ledger.engine.check_commit([prepared[0]])
                leg_b.ledger.engine.check_commit([prepared[1]])
                applied = (
                    leg_a.ledger.engine.apply_prepared([prepared[0]])
                    + leg_b.ledger.engine.apply_prepared([prepared[1]])
                )

        logger.info(
            "Swap settled by %s: %s on %s / %s on %s",
            caller,
            leg_a.transition.kind.value, leg_a.ledger.config.contract_address,
            leg_b.transition.kind.value, leg_b.ledger.config.contract_address,
        )
        return applied[0], applied[1]

    execute = execute_swap

    def _prepare_leg(self, leg: SwapLeg) -> PreparedTransition:
        engine = leg.ledger.engine
        expected = self.action_hash_for(leg.ledger, leg.principal, leg.transition, leg.nonce)
        if expected != leg.action_hash:
            raise AuthwitMismatch(
                "Recomputed action hash does not match the authorized one",
                {"principal": leg.principal,
                 "consumer": leg.ledger.config.contract_address},
            )
        consumption = engine.check_authwit(leg.principal, leg.action_hash)

        kind = leg.transition.kind
        if kind == TransitionKind.TRANSFER:
            return engine.prepare_transfer(
                self.address, leg.recipient, leg.transition, authwit=consumption,
            )
        if kind == TransitionKind.REDEEM:
            return engine.prepare_redeem(
                leg.principal, leg.amount, leg.transition,
                caller=  self.address,
                authwit= consumption,
            )
        raise SchemaError("Swap legs must be transfer or redeem", {"kind": kind.value})

    @staticmethod
    def _check_disjoint(prepared: List[PreparedTransition]) -> None:
        # Legs on different ledgers have separate nullifier sets; a shared
        # nullifier value still means the same witness was reused.
        a, b = (set(p.published_nullifiers) for p in prepared)
        overlap = a & b
        if overlap:
            raise DuplicateNullifier(
                "Swap legs publish the same nullifier",
                {"nullifier": sorted(overlap)[0]},
            )
