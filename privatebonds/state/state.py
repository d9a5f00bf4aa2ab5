"""
Owned ledger state for one instrument.

Everything the ledger persists lives in this one struct and is passed by
reference into the transition engine. There are no module-level
singletons. The commitment store and nullifier set are written only by
the engine; the access gate and verifier only read.

`epoch` increments on every mutation; a prepared transition remembers the
epoch it was checked against and is refused if the state moved since.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from privatebonds.authwit.authwit import AuthwitRecord
from privatebonds.core.config import LedgerConfig
from privatebonds.core.models import SupplyPolicy
from privatebonds.state.commitments import CommitmentStore
from privatebonds.state.nullifiers import NullifierSet


@dataclass
class LedgerState:
    owner:         str
    supply_policy: SupplyPolicy
    commitments:   CommitmentStore
    nullifiers:    NullifierSet
    whitelist:     Dict[str, bool] = field(default_factory=dict)
    total_supply:  int  = 0
    maturity_date: int  = 0
    initialized:   bool = False
    authwits:      Dict[Tuple[str, str], AuthwitRecord] = field(default_factory=dict)
    epoch:         int  = 0

    @classmethod
    def create(cls, config: LedgerConfig, owner: str) -> "LedgerState":
        return cls(
            owner=         owner,
            supply_policy= config.supply_policy,
            commitments=   CommitmentStore(
                depth=             config.tree_depth,
                root_history_size= config.root_history_size,
            ),
            nullifiers=    NullifierSet(),
        )

    def is_whitelisted(self, address: str) -> bool:
        return self.whitelist.get(address, False)

    def authwit(self, principal: str, action_hash: str) -> Optional[AuthwitRecord]:
        return self.authwits.get((principal, action_hash))

    def snapshot(self) -> Dict[str, Any]:
        """Public view of the state. Two equal snapshots mean nothing changed."""
        return {
            "owner":            self.owner,
            "supply_policy":    self.supply_policy.value,
            "total_supply":     self.total_supply,
            "maturity_date":    self.maturity_date,
            "initialized":      self.initialized,
            "root":             self.commitments.root,
            "commitment_count": len(self.commitments),
            "nullifiers":       sorted(self.nullifiers),
            "whitelist":        {a: w for a, w in sorted(self.whitelist.items())},
            "authwits": {
                f"{p}:{h}": rec.status.value
                for (p, h), rec in sorted(self.authwits.items())
            },
            "epoch":            self.epoch,
        }
