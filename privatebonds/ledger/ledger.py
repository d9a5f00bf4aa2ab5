"""
Instrument ledger — the public contract surface for one bond.

Every entry point takes the authenticated caller as its first argument
and either applies completely or raises a typed rejection before anything
is written. Views are read-only and public.

    initialize             once, owner
    add/remove whitelist   owner
    distribute_or_issue    owner; fixed supply → transfer from the
                           issuer's notes, mint/burn → issue
    transfer               any holder; recipient whitelisted
    redeem                 whitelisted holder, at/after maturity
    create/cancel_authwit  any principal
    transfer_ownership     owner
"""

import logging
from pathlib import Path
from typing import List, Optional

from privatebonds.core.config import LedgerConfig
from privatebonds.core.crypto import Ed25519KeyManager
from privatebonds.core.events import EventEnvelope, EventLog
from privatebonds.core.exceptions import SchemaError
from privatebonds.core.models import AuthwitStatus, Transition, TransitionKind
from privatebonds.core.time import Clock, ledger_timestamp
from privatebonds.settlement.engine import AppliedTransition, TransitionEngine
from privatebonds.state.replay import replay_events
from privatebonds.state.state import LedgerState
from privatebonds.verification.verifier import ProofVerifier


logger = logging.getLogger(__name__)


class BondLedger:

    def __init__(
        self,
        config:      LedgerConfig,
        owner:       str,
        verifier:    ProofVerifier,
        clock:       Clock = ledger_timestamp,
        key_manager: Optional[Ed25519KeyManager] = None,
    ) -> None:
        if not owner:
            raise SchemaError("owner must be a non-empty address")
        self.config = config
        self.state  = LedgerState.create(config, owner)
        self.event_log = EventLog(
            contract_address= config.contract_address,
            key_manager=      key_manager,
            path=             Path(config.events_path) if config.events_path else None,
        )
        if len(self.event_log):
            replay_events(self.state, self.event_log.events(), config)
        self.engine = TransitionEngine(
            config=   config,
            state=    self.state,
            verifier= verifier,
            events=   self.event_log,
            clock=    clock,
        )
        logger.debug("BondLedger %s created, owner=%s", config.contract_address, owner)

    # ── Lifecycle & administration ────────────────────────────

    def initialize(
        self,
        caller:        str,
        total_supply:  int,
        maturity_date: int,
        genesis:       Optional[Transition] = None,
    ) -> Optional[AppliedTransition]:
        """
        Set supply and maturity once. A non-zero supply must come with a
        genesis issue transition minting it to the owner.
        """
        return self.engine.initialize(caller, total_supply, maturity_date, genesis)

    def add_to_whitelist(self, caller: str, address: str) -> None:
        self.engine.set_whitelisted(caller, address, True)

    def remove_from_whitelist(self, caller: str, address: str) -> None:
        self.engine.set_whitelisted(caller, address, False)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self.engine.transfer_ownership(caller, new_owner)

    # ── Transitions ───────────────────────────────────────────

    def distribute_or_issue(
        self,
        caller:     str,
        recipient:  str,
        transition: Transition,
    ) -> AppliedTransition:
        """
        Owner moves value to `recipient`. An issue transition mints (mint/burn
        policy only); a transfer transition distributes from the owner's notes.
        """
        with self.engine.lock:
            if transition.kind == TransitionKind.ISSUE:
                prepared = self.engine.prepare_issue(caller, recipient, transition)
            elif transition.kind == TransitionKind.TRANSFER:
                prepared = self.engine.prepare_transfer(
                    caller, recipient, transition, owner_only=True,
                )
            else:
                raise SchemaError(
                    "distribute_or_issue takes an issue or transfer transition",
                    {"kind": transition.kind.value},
                )
            return self.engine.commit([prepared])[0]

    def transfer(self, caller: str, recipient: str, transition: Transition) -> AppliedTransition:
        with self.engine.lock:
            prepared = self.engine.prepare_transfer(caller, recipient, transition)
            return self.engine.commit([prepared])[0]

    def redeem(self, caller: str, amount: int, transition: Transition) -> AppliedTransition:
        with self.engine.lock:
            prepared = self.engine.prepare_redeem(caller, amount, transition)
            return self.engine.commit([prepared])[0]

    # ── Authorization witnesses ───────────────────────────────

    def create_authwit(self, caller: str, action_hash: str, nonce: int) -> None:
        self.engine.create_authwit(caller, action_hash, nonce)

    def cancel_authwit(self, caller: str, action_hash: str) -> None:
        self.engine.cancel_authwit(caller, action_hash)

    def authwit_status(self, principal: str, action_hash: str) -> Optional[AuthwitStatus]:
        record = self.state.authwit(principal, action_hash)
        return record.status if record else None

    # ── Views ─────────────────────────────────────────────────

    @property
    def total_supply(self) -> int:
        return self.state.total_supply

    @property
    def maturity_date(self) -> int:
        return self.state.maturity_date

    @property
    def owner(self) -> str:
        return self.state.owner

    @property
    def root(self) -> str:
        return self.state.commitments.root

    def is_whitelisted(self, address: str) -> bool:
        return self.state.is_whitelisted(address)

    def is_known_root(self, root: str) -> bool:
        return self.state.commitments.is_known_root(root)

    def commitment(self, leaf_index: int) -> str:
        return self.state.commitments.leaf(leaf_index)

    def is_nullified(self, nullifier: str) -> bool:
        return nullifier in self.state.nullifiers

    def merkle_path(self, leaf_index: int) -> List[str]:
        return self.state.commitments.path(leaf_index)

    def events(self, event_type: Optional[str] = None, start: int = 0) -> List[EventEnvelope]:
        return self.event_log.events(event_type=event_type, start=start)

    def __repr__(self) -> str:
        return (
            f"BondLedger({self.config.contract_address}, "
            f"policy={self.state.supply_policy.value}, "
            f"commitments={len(self.state.commitments)})"
        )
