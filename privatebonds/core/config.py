"""
privatebonds/core/config.py

Ledger configuration.

Sources (in order of precedence):
    1. Environment variables (PRIVATEBONDS_*)
    2. YAML file (LedgerConfig.from_yaml, or from_env(yaml_path=...))
    3. Keyword arguments / defaults

LedgerConfig.from_env() applies all three layers.

The supply policy is chosen here, once, and is fixed for the life of the
ledger. There is no code path that runs both policies.
"""

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from privatebonds.core.exceptions import ConfigError
from privatebonds.core.models import SupplyPolicy


ENV_PREFIX = "PRIVATEBONDS_"

INT_FIELDS = ("asset_id", "root_history_size", "tree_depth", "chain_id", "version")


@dataclass
class LedgerConfig:
    contract_address:  str
    asset_id:          int          = 1
    supply_policy:     SupplyPolicy = SupplyPolicy.FIXED
    root_history_size: int          = 64
    tree_depth:        int          = 20
    chain_id:          int          = 1
    version:           int          = 1
    events_path:       Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.supply_policy, str) and not isinstance(
            self.supply_policy, SupplyPolicy
        ):
            try:
                self.supply_policy = SupplyPolicy(self.supply_policy)
            except ValueError:
                raise ConfigError(
                    f"Unknown supply_policy '{self.supply_policy}'",
                    {"valid": [p.value for p in SupplyPolicy]},
                )
        self.validate()

    def validate(self) -> None:
        if not isinstance(self.contract_address, str) or not self.contract_address:
            raise ConfigError("contract_address must be a non-empty string")
        for name in INT_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigError(f"{name} must be an integer", {name: value})
        if self.asset_id < 0:
            raise ConfigError("asset_id must be non-negative", {"asset_id": self.asset_id})
        if self.root_history_size < 1:
            raise ConfigError(
                "root_history_size must be at least 1",
                {"root_history_size": self.root_history_size},
            )
        if not 1 <= self.tree_depth <= 32:
            raise ConfigError(
                "tree_depth must be between 1 and 32",
                {"tree_depth": self.tree_depth},
            )
        if self.chain_id < 0 or self.version < 0:
            raise ConfigError("chain_id and version must be non-negative")

    # ── Loaders ───────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LedgerConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(
                "Unknown configuration keys", {"keys": sorted(unknown)}
            )
        if "contract_address" not in data:
            raise ConfigError("contract_address is required")
        return cls(**dict(data))

    @classmethod
    def from_yaml(cls, path: Path) -> "LedgerConfig":
        """
        Load configuration from a YAML mapping.

        Raises ConfigError if the file is missing or not a mapping.
        """
        return cls.from_dict(_read_yaml(path))

    @classmethod
    def from_env(
        cls,
        environ:   Optional[Mapping[str, str]] = None,
        yaml_path: Optional[Path] = None,
        **defaults: Any,
    ) -> "LedgerConfig":
        """
        Read PRIVATEBONDS_<FIELD> variables over the YAML file at `yaml_path`
        (if given) over `defaults`.
        e.g. PRIVATEBONDS_SUPPLY_POLICY=mint_burn, PRIVATEBONDS_CHAIN_ID=31337
        """
        environ = os.environ if environ is None else environ
        data: Dict[str, Any] = dict(defaults)
        if yaml_path is not None:
            data.update(_read_yaml(yaml_path))
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.name in INT_FIELDS:
                try:
                    data[f.name] = int(raw)
                except ValueError:
                    raise ConfigError(
                        f"{ENV_PREFIX}{f.name.upper()} must be an integer",
                        {"value": raw},
                    )
            else:
                data[f.name] = raw
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["supply_policy"] = self.supply_policy.value
        return data


def _read_yaml(path: Path) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data
