"""
Rebuild LedgerState from an event log.

Every public state change is an event, so a ledger restarted on an
existing events_path replays the log instead of starting empty:

    NullifierPublished     nullifier set
    CommitmentAdded        commitment store (leaf index must match)
    WhitelistUpdated       whitelist
    SupplyPolicySet        initialized, total_supply, maturity_date
    TotalSupplyChanged     total_supply
    OwnershipTransferred   owner
    AuthwitCreated         authwit record

A log with chain or signature violations is refused. An authwit whose
nullifier is published replays as CONSUMED; the log does not record
whether the nullifier came from a swap or a cancel.
"""

import logging
from typing import List

from privatebonds.authwit.authwit import AuthwitRecord
from privatebonds.core.config import LedgerConfig
from privatebonds.core.events import EventEnvelope, verify_envelopes
from privatebonds.core.exceptions import LedgerError
from privatebonds.core.models import AuthwitStatus, EventType
from privatebonds.state.state import LedgerState


logger = logging.getLogger(__name__)


def replay_events(
    state:     LedgerState,
    envelopes: List[EventEnvelope],
    config:    LedgerConfig,
) -> None:
    report = verify_envelopes(envelopes)
    if not report.valid:
        raise LedgerError(
            "Refusing to replay an event log with violations",
            {"violations": len(report.violations)},
        )

    for env in envelopes:
        if env.contract_address != config.contract_address:
            raise LedgerError(
                "Event log belongs to another ledger",
                {"sequence": env.sequence, "contract_address": env.contract_address},
            )
        _apply(state, env, config)

    for record in state.authwits.values():
        if record.nullifier in state.nullifiers:
            record.status = AuthwitStatus.CONSUMED

    state.epoch = len(envelopes)
    logger.info(
        "Replayed %d event(s) for %s: %d commitment(s), %d nullifier(s)",
        len(envelopes), config.contract_address,
        len(state.commitments), len(state.nullifiers),
    )


def _apply(state: LedgerState, env: EventEnvelope, config: LedgerConfig) -> None:
    p = env.payload
    t = env.event_type

    if t == EventType.NULLIFIER_PUBLISHED:
        state.nullifiers.insert(p["nullifier"])

    elif t == EventType.COMMITMENT_ADDED:
        leaf_index, _ = state.commitments.insert(p["commitment"])
        if leaf_index != p["leaf_index"]:
            raise LedgerError(
                "Commitment replayed at the wrong leaf index",
                {"expected": p["leaf_index"], "got": leaf_index},
            )

    elif t == EventType.WHITELIST_UPDATED:
        state.whitelist[p["address"]] = bool(p["whitelisted"])

    elif t == EventType.SUPPLY_POLICY_SET:
        if p["policy"] != config.supply_policy.value:
            raise LedgerError(
                "Event log was written under a different supply policy",
                {"log": p["policy"], "config": config.supply_policy.value},
            )
        state.initialized   = True
        state.total_supply  = p["total_supply"]
        state.maturity_date = p["maturity_date"]

    elif t == EventType.TOTAL_SUPPLY_CHANGED:
        state.total_supply = p["total_supply"]

    elif t == EventType.OWNERSHIP_TRANSFERRED:
        state.owner = p["new_owner"]

    elif t == EventType.AUTHWIT_CREATED:
        key = (p["principal"], p["action_hash"])
        state.authwits[key] = AuthwitRecord(
            principal=   p["principal"],
            action_hash= p["action_hash"],
            nonce=       p["nonce"],
        )
