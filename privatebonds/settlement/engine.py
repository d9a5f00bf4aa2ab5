"""
Transition engine — the only writer of the commitment store and nullifier set.

State machine per transition:

    Proposed ──prepare()──▶ Verified ──commit()──▶ Applied
        └──────────────────▶ Rejected  (typed exception, nothing written)

prepare() runs every check and returns a PreparedTransition; it never
mutates. Check order:
    1. initialized, kind and public-input schema
    2. access gate (owner / whitelist)
    3. supply policy
    4. instrument parameters (asset id, maturity date, bound addresses)
    5. ledger clock (maturity / expiry)
    6. nullifiers: no duplicates inside the transition, none already published
    7. merkle root is current or in the retained history, and the tree
       has room for the new commitments
    8. verifier

commit() is check_commit() then apply_prepared(). check_commit() refuses
any transition prepared against an older epoch, nullifier overlap inside
the batch, a negative resulting supply, and a batch whose commitments do
not fit in the tree. apply_prepared() then inserts nullifiers, inserts
commitments and adjusts supply for every transition before emitting any
event. A swap across two ledgers runs check_commit() on both before
applying either.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from privatebonds.core.config import LedgerConfig
from privatebonds.core.events import EventLog
from privatebonds.core.exceptions import (
    AlreadyInitialized,
    AuthwitAlreadyConsumed,
    AuthwitNotFound,
    CommitmentTreeFull,
    DuplicateAuthwit,
    DuplicateNullifier,
    InstrumentMatured,
    InvalidProof,
    NotInitialized,
    NotMatured,
    SchemaError,
    StaleOrUnknownRoot,
    StaleTransition,
    SupplyInvariantViolation,
    TransitionRejected,
)
from privatebonds.core.hashing import is_digest
from privatebonds.core.models import (
    AuthwitStatus,
    EventType,
    SupplyPolicy,
    Transition,
    TransitionKind,
)
from privatebonds.core.time import Clock, ledger_timestamp
from privatebonds.authwit.authwit import AuthwitRecord, authwit_nullifier
from privatebonds.policy.access import AccessGate
from privatebonds.state.state import LedgerState
from privatebonds.verification.schema import validate_public_inputs
from privatebonds.verification.verifier import ProofVerifier


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthwitConsumption:
    principal:   str
    action_hash: str
    nullifier:   str


@dataclass(frozen=True)
class PreparedTransition:
    """A transition that passed every check against state at `epoch`."""
    contract_address: str
    epoch:            int
    caller:           str
    transition:       Transition
    supply_delta:     int = 0
    authwit:          Optional[AuthwitConsumption] = None

    @property
    def published_nullifiers(self) -> List[str]:
        published = self.transition.nullifiers
        if self.authwit is not None:
            published.append(self.authwit.nullifier)
        return published


@dataclass
class AppliedTransition:
    kind:         TransitionKind
    nullifiers:   List[str]
    leaf_indices: List[int] = field(default_factory=list)
    root:         str = ""


class TransitionEngine:

    def __init__(
        self,
        config:   LedgerConfig,
        state:    LedgerState,
        verifier: ProofVerifier,
        events:   EventLog,
        clock:    Clock = ledger_timestamp,
    ) -> None:
        self.config   = config
        self.state    = state
        self.verifier = verifier
        self.events   = events
        self.clock    = clock
        self.gate     = AccessGate(state)

        # One transition applied at a time.
        self.lock: threading.RLock = threading.RLock()

    # ── Lifecycle ─────────────────────────────────────────────

    def initialize(
        self,
        caller:        str,
        total_supply:  int,
        maturity_date: int,
        genesis:       Optional[Transition] = None,
    ) -> Optional[AppliedTransition]:
        """
        One-time setup. Under the fixed policy the whole supply is minted
        here, to the owner, by the genesis issue transition; under mint/burn
        the supply starts at the genesis amount (or zero without genesis).
        """
        with self.lock:
            self.gate.require_owner(caller)
            if self.state.initialized:
                raise AlreadyInitialized("Ledger is already initialized")
            for name, value in (("total_supply", total_supply),
                                ("maturity_date", maturity_date)):
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    raise SchemaError(f"{name} must be a non-negative int", {name: value})

            prepared = None
            if genesis is not None:
                prepared = self._prepare(
                    caller, genesis, TransitionKind.ISSUE,
                    principal=        caller,
                    recipient=        caller,
                    genesis_maturity= maturity_date,
                )
                if genesis.public_inputs["amount"] != total_supply:
                    raise SupplyInvariantViolation(
                        "Genesis amount must equal total supply",
                        {"genesis": genesis.public_inputs["amount"],
                         "total_supply": total_supply},
                    )
            elif total_supply > 0:
                raise SupplyInvariantViolation(
                    "A non-zero supply must be minted by a genesis transition",
                    {"total_supply": total_supply},
                )

            self.state.maturity_date = maturity_date
            self.state.total_supply  = total_supply
            self.state.initialized   = True
            self.state.whitelist[self.state.owner] = True

            pending = [
                (EventType.SUPPLY_POLICY_SET, {
                    "policy":        self.state.supply_policy.value,
                    "total_supply":  total_supply,
                    "maturity_date": maturity_date,
                }),
                (EventType.WHITELIST_UPDATED, {
                    "address":     self.state.owner,
                    "whitelisted": True,
                }),
            ]
            applied = None
            if prepared is not None:
                applied, events = self._apply(prepared)
                pending.extend(events)
            self.state.epoch += 1
            self._emit_all(pending)
            logger.info(
                "Initialized %s: policy=%s maturity=%d",
                self.config.contract_address,
                self.state.supply_policy.value,
                maturity_date,
            )
            return applied

    # ── Administrative ────────────────────────────────────────

    def set_whitelisted(self, caller: str, address: str, whitelisted: bool) -> None:
        with self.lock:
            self.gate.require_owner(caller)
            if not isinstance(address, str) or not address:
                raise SchemaError("address must be a non-empty string")
            self.state.whitelist[address] = whitelisted
            self.events.emit(EventType.WHITELIST_UPDATED, {
                "address":     address,
                "whitelisted": whitelisted,
            })
            self.state.epoch += 1

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        with self.lock:
            self.gate.require_owner(caller)
            if not isinstance(new_owner, str) or not new_owner:
                raise SchemaError("new_owner must be a non-empty string")
            previous = self.state.owner
            self.state.owner = new_owner
            self.events.emit(EventType.OWNERSHIP_TRANSFERRED, {
                "previous_owner": previous,
                "new_owner":      new_owner,
            })
            self.state.epoch += 1

    # ── Prepare (Proposed → Verified) ─────────────────────────

    def prepare_issue(
        self,
        caller:     str,
        recipient:  str,
        transition: Transition,
    ) -> PreparedTransition:
        return self._prepare(
            caller, transition, TransitionKind.ISSUE,
            principal=  caller,
            recipient=  recipient,
            owner_only= True,
        )

    def prepare_transfer(
        self,
        caller:     str,
        recipient:  str,
        transition: Transition,
        *,
        owner_only: bool = False,
        authwit:    Optional[AuthwitConsumption] = None,
    ) -> PreparedTransition:
        return self._prepare(
            caller, transition, TransitionKind.TRANSFER,
            principal=  authwit.principal if authwit else caller,
            recipient=  recipient,
            owner_only= owner_only,
            authwit=    authwit,
        )

    def prepare_redeem(
        self,
        principal:  str,
        amount:     int,
        transition: Transition,
        *,
        caller:     Optional[str] = None,
        authwit:    Optional[AuthwitConsumption] = None,
    ) -> PreparedTransition:
        return self._prepare(
            caller or principal, transition, TransitionKind.REDEEM,
            principal= principal,
            amount=    amount,
            authwit=   authwit,
        )

    # ── Commit (Verified → Applied) ───────────────────────────

    def ensure_current(self, prepared: PreparedTransition) -> None:
        if prepared.contract_address != self.config.contract_address:
            raise StaleTransition(
                "Prepared transition belongs to another ledger",
                {"expected": self.config.contract_address,
                 "got": prepared.contract_address},
            )
        if prepared.epoch != self.state.epoch:
            raise StaleTransition(
                "Ledger state changed since the transition was prepared",
                {"prepared_epoch": prepared.epoch, "epoch": self.state.epoch},
            )

    def commit(self, prepared: Sequence[PreparedTransition]) -> List[AppliedTransition]:
        """Apply all of `prepared` or none of them."""
        with self.lock:
            self.check_commit(prepared)
            return self.apply_prepared(prepared)

    def check_commit(self, prepared: Sequence[PreparedTransition]) -> None:
        """
        Every check commit() makes before writing. Callers holding the lock
        across check_commit() and apply_prepared() get the same guarantee
        as commit().
        """
        with self.lock:
            seen = set()
            supply = self.state.total_supply
            outputs = 0
            for p in prepared:
                self.ensure_current(p)
                for nullifier in p.published_nullifiers:
                    if nullifier in seen:
                        raise DuplicateNullifier(
                            "Nullifier published by more than one transition in the batch",
                            {"nullifier": nullifier},
                        )
                    seen.add(nullifier)
                supply += p.supply_delta
                outputs += len(p.transition.new_commitments)
            if supply < 0:
                raise SupplyInvariantViolation(
                    "Batch would drive total supply negative",
                    {"total_supply": self.state.total_supply},
                )
            self._require_room(outputs)

    def apply_prepared(self, prepared: Sequence[PreparedTransition]) -> List[AppliedTransition]:
        """Write a batch that passed check_commit() under the current lock hold."""
        with self.lock:
            applied, pending = [], []
            for p in prepared:
                result, events = self._apply(p)
                applied.append(result)
                pending.extend(events)
            self.state.epoch += 1
            self._emit_all(pending)
            return applied

    # ── Authorization witnesses ───────────────────────────────

    def create_authwit(self, principal: str, action_hash: str, nonce: int) -> AuthwitRecord:
        with self.lock:
            if not is_digest(action_hash):
                raise SchemaError("action_hash must be a 64-char hex digest")
            if not isinstance(nonce, int) or isinstance(nonce, bool) or nonce < 0:
                raise SchemaError("nonce must be a non-negative int", {"nonce": nonce})
            if self.state.authwit(principal, action_hash) is not None:
                raise DuplicateAuthwit(
                    "Authwit already created",
                    {"principal": principal, "action_hash": action_hash},
                )
            record = AuthwitRecord(principal=principal, action_hash=action_hash, nonce=nonce)
            if record.nullifier in self.state.nullifiers:
                raise AuthwitAlreadyConsumed(
                    "Authwit nullifier already published",
                    {"action_hash": action_hash},
                )
            self.state.authwits[(principal, action_hash)] = record
            self.events.emit(EventType.AUTHWIT_CREATED, {
                "principal":   principal,
                "action_hash": action_hash,
                "nonce":       nonce,
            })
            self.state.epoch += 1
            return record

    def cancel_authwit(self, principal: str, action_hash: str) -> None:
        """Publish the authwit's nullifier without performing the action."""
        with self.lock:
            consumption = self.check_authwit(principal, action_hash)
            self.state.nullifiers.insert(consumption.nullifier)
            self.state.authwit(principal, action_hash).status = AuthwitStatus.CANCELLED
            self.events.emit(EventType.NULLIFIER_PUBLISHED, {
                "nullifier": consumption.nullifier,
            })
            self.state.epoch += 1
            logger.info("Authwit cancelled on %s", self.config.contract_address)

    def check_authwit(self, principal: str, action_hash: str) -> AuthwitConsumption:
        """Read-only: the authwit exists and its nullifier is unpublished."""
        record = self.state.authwit(principal, action_hash)
        if record is None:
            raise AuthwitNotFound(
                "No authwit for principal and action hash",
                {"principal": principal, "action_hash": action_hash},
            )
        nullifier = authwit_nullifier(principal, action_hash)
        if nullifier in self.state.nullifiers:
            raise AuthwitAlreadyConsumed(
                "Authwit already consumed or cancelled",
                {"action_hash": action_hash, "status": record.status.value},
            )
        return AuthwitConsumption(principal, action_hash, nullifier)

    # ── Internal ──────────────────────────────────────────────

    def _prepare(
        self,
        caller:           str,
        transition:       Transition,
        kind:             TransitionKind,
        *,
        principal:        str,
        recipient:        Optional[str] = None,
        amount:           Optional[int] = None,
        owner_only:       bool = False,
        authwit:          Optional[AuthwitConsumption] = None,
        genesis_maturity: Optional[int] = None,
    ) -> PreparedTransition:
        try:
            return self._check(
                caller, transition, kind,
                principal=        principal,
                recipient=        recipient,
                amount=           amount,
                owner_only=       owner_only,
                authwit=          authwit,
                genesis_maturity= genesis_maturity,
            )
        except (TransitionRejected, SchemaError) as exc:
            logger.info(
                "Rejected %s on %s: %s: %s",
                kind.value, self.config.contract_address,
                type(exc).__name__, exc.message,
            )
            raise

    def _check(
        self,
        caller, transition, kind, *,
        principal, recipient, amount, owner_only, authwit, genesis_maturity,
    ) -> PreparedTransition:
        genesis = genesis_maturity is not None
        if not genesis and not self.state.initialized:
            raise NotInitialized("Ledger is not initialized")

        # 1. kind and schema
        if transition.kind != kind:
            raise SchemaError(
                f"Expected a {kind.value} transition",
                {"got": transition.kind.value},
            )
        pi = transition.public_inputs
        validate_public_inputs(kind, pi)

        # 2. access gate
        if owner_only or genesis:
            self.gate.require_owner(caller)
        if kind in (TransitionKind.ISSUE, TransitionKind.TRANSFER) and not genesis:
            self.gate.require_whitelisted(recipient)
        if kind == TransitionKind.REDEEM:
            self.gate.require_whitelisted(principal)

        # 3. supply policy
        supply_delta = self._supply_delta(kind, pi, genesis)

        # 4. instrument parameters
        maturity = genesis_maturity if genesis else self.state.maturity_date
        if pi["asset_id"] != self.config.asset_id:
            raise SchemaError(
                "asset_id does not match this instrument",
                {"expected": self.config.asset_id, "got": pi["asset_id"]},
            )
        if pi["maturity_date"] != maturity:
            raise SchemaError(
                "maturity_date does not match this instrument",
                {"expected": maturity, "got": pi["maturity_date"]},
            )
        if kind == TransitionKind.TRANSFER and pi["recipient"] != recipient:
            raise SchemaError("Proof is bound to a different recipient")
        if kind == TransitionKind.REDEEM:
            if pi["redeemer"] != principal:
                raise SchemaError("Proof is bound to a different redeemer")
            if pi["amount"] != amount:
                raise SchemaError(
                    "Redeem amount does not match the proof",
                    {"amount": amount, "proven": pi["amount"]},
                )
        ciphertexts = transition.note_ciphertexts
        if ciphertexts and len(ciphertexts) != len(pi["new_commitments"]):
            raise SchemaError(
                "Expected one note ciphertext per new commitment",
                {"commitments": len(pi["new_commitments"]),
                 "ciphertexts": len(ciphertexts)},
            )

        # 5. ledger clock
        now = self.clock()
        if kind == TransitionKind.TRANSFER and maturity and now >= maturity:
            raise InstrumentMatured(
                "Instrument has matured; transfers are closed",
                {"maturity_date": maturity, "now": now},
            )
        if kind == TransitionKind.REDEEM:
            if now < maturity:
                raise NotMatured(
                    "Instrument has not matured",
                    {"maturity_date": maturity, "now": now},
                )
            if pi["current_timestamp"] > now:
                raise SchemaError(
                    "current_timestamp is ahead of the ledger clock",
                    {"current_timestamp": pi["current_timestamp"], "now": now},
                )
            if pi["current_timestamp"] < maturity:
                raise NotMatured(
                    "Proof was built before maturity",
                    {"maturity_date": maturity, "current_timestamp": pi["current_timestamp"]},
                )

        # 6. nullifiers
        nullifiers = transition.nullifiers
        if len(set(nullifiers)) != len(nullifiers):
            raise DuplicateNullifier("Transition repeats a nullifier")
        for nullifier in nullifiers:
            if nullifier in self.state.nullifiers:
                raise DuplicateNullifier(
                    "Nullifier already published",
                    {"nullifier": nullifier},
                )
        if authwit is not None and authwit.nullifier in self.state.nullifiers:
            raise AuthwitAlreadyConsumed(
                "Authwit already consumed or cancelled",
                {"action_hash": authwit.action_hash},
            )

        # 7. merkle root and tree capacity
        if "merkle_root" in pi and not self.state.commitments.is_known_root(pi["merkle_root"]):
            raise StaleOrUnknownRoot(
                "Proof references an unknown or stale root",
                {"merkle_root": pi["merkle_root"]},
            )
        self._require_room(len(pi["new_commitments"]))

        # 8. verifier
        if not self._verify(kind, pi, transition.proof):
            raise InvalidProof("Verifier rejected the proof", {"kind": kind.value})

        return PreparedTransition(
            contract_address= self.config.contract_address,
            epoch=            self.state.epoch,
            caller=           caller,
            transition=       transition,
            supply_delta=     supply_delta,
            authwit=          authwit,
        )

    def _supply_delta(self, kind: TransitionKind, pi: dict, genesis: bool) -> int:
        policy = self.state.supply_policy
        if kind == TransitionKind.ISSUE:
            if genesis:
                return 0
            if policy == SupplyPolicy.FIXED:
                raise SupplyInvariantViolation(
                    "Fixed-supply instrument cannot issue after initialization; "
                    "use distribute",
                )
            return pi["amount"]
        if kind == TransitionKind.REDEEM and policy == SupplyPolicy.MINT_BURN:
            if pi["amount"] > self.state.total_supply:
                raise SupplyInvariantViolation(
                    "Redeem amount exceeds total supply",
                    {"amount": pi["amount"], "total_supply": self.state.total_supply},
                )
            return -pi["amount"]
        return 0

    def _verify(self, kind: TransitionKind, pi: dict, proof: str) -> bool:
        try:
            return self.verifier.verify(kind, pi, proof) is True
        except Exception as exc:
            logger.warning("Verifier raised %s; treating proof as invalid", type(exc).__name__)
            return False

    def _require_room(self, count: int) -> None:
        commitments = self.state.commitments
        if count > commitments.remaining:
            raise CommitmentTreeFull(
                "Commitment tree has no room for the new commitments",
                {"new_commitments": count,
                 "remaining": commitments.remaining,
                 "capacity": commitments.capacity},
            )

    def _apply(self, prepared: PreparedTransition) -> Tuple[AppliedTransition, List[Tuple[str, dict]]]:
        """Mutate state for one checked transition; return the events to emit."""
        transition = prepared.transition
        applied = AppliedTransition(kind=transition.kind, nullifiers=[])
        events: List[Tuple[str, dict]] = []

        for nullifier in transition.nullifiers:
            self.state.nullifiers.insert(nullifier)
            applied.nullifiers.append(nullifier)
            events.append((EventType.NULLIFIER_PUBLISHED, {"nullifier": nullifier}))

        if prepared.authwit is not None:
            self.state.nullifiers.insert(prepared.authwit.nullifier)
            record = self.state.authwit(prepared.authwit.principal, prepared.authwit.action_hash)
            record.status = AuthwitStatus.CONSUMED
            applied.nullifiers.append(prepared.authwit.nullifier)
            events.append((EventType.NULLIFIER_PUBLISHED, {
                "nullifier": prepared.authwit.nullifier,
            }))

        ciphertexts = transition.note_ciphertexts
        for i, commitment in enumerate(transition.new_commitments):
            leaf_index, root = self.state.commitments.insert(commitment)
            applied.leaf_indices.append(leaf_index)
            applied.root = root
            events.append((EventType.COMMITMENT_ADDED, {
                "leaf_index": leaf_index,
                "commitment": commitment,
                "ciphertext": ciphertexts[i] if ciphertexts else None,
            }))

        if prepared.supply_delta:
            self.state.total_supply += prepared.supply_delta
            events.append((EventType.TOTAL_SUPPLY_CHANGED, {
                "total_supply": self.state.total_supply,
            }))

        if not applied.root:
            applied.root = self.state.commitments.root
        logger.debug(
            "Applied %s on %s: %d nullifier(s), %d commitment(s)",
            transition.kind.value, self.config.contract_address,
            len(applied.nullifiers), len(applied.leaf_indices),
        )
        return applied, events

    def _emit_all(self, events: List[Tuple[str, dict]]) -> None:
        for event_type, payload in events:
            self.events.emit(event_type, payload)
