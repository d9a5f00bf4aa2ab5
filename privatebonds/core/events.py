"""
privatebonds/core/events.py

Public event log — v1

emit() MUST, in this exact order:
  1. Acquire lock
  2. Build an EventEnvelope chained to the previous one
  3. Sign it (when the log has a sequencer key)
  4. Append to JSONL (when the log has a path)
  5. Advance in-memory state — only after a confirmed write
  6. Return the envelope

Chain:
    causal_hash  = SHA-256(JCS(prev.to_chain_dict()))
    first entry  = GENESIS_HASH ("0" * 64)

Events never carry amounts. CommitmentAdded carries the note ciphertext,
which is opaque to anyone without the recipient's viewing key.
"""

import json
import threading
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from privatebonds.core.canonical import canonical_hash, canonicalize
from privatebonds.core.crypto import Ed25519KeyManager
from privatebonds.core.exceptions import LedgerError
from privatebonds.core.models import VALID_EVENT_TYPES
from privatebonds.core.time import wire_timestamp


GENESIS_HASH = "0" * 64


@dataclass
class EventEnvelope:
    sequence:          int
    event_type:        str
    contract_address:  str
    timestamp:         str
    causal_hash:       str
    payload:           Dict[str, Any]
    signer_public_key: str           = ""
    signature:         Optional[str] = None

    @classmethod
    def create(
        cls,
        event_type:       str,
        contract_address: str,
        sequence:         int,
        payload:          Dict[str, Any],
        prev:             Optional["EventEnvelope"] = None,
        signer_public_key: str = "",
    ) -> "EventEnvelope":
        if event_type not in VALID_EVENT_TYPES:
            raise ValueError(
                f"Invalid event_type '{event_type}'. "
                f"Valid: {sorted(VALID_EVENT_TYPES)}"
            )
        if not isinstance(payload, dict):
            raise TypeError(
                f"payload must be dict, got {type(payload).__name__}"
            )
        if not isinstance(sequence, int) or sequence < 0:
            raise ValueError(
                f"sequence must be non-negative int, got {sequence!r}"
            )
        return cls(
            sequence=          sequence,
            event_type=        event_type,
            contract_address=  contract_address,
            timestamp=         wire_timestamp(),
            causal_hash=       cls.expected_causal_hash_from(prev),
            payload=           payload,
            signer_public_key= signer_public_key,
        )

    # ── Canonical forms ───────────────────────────────────────

    def to_chain_dict(self) -> Dict[str, Any]:
        """Every field except the signature. This is also what gets signed."""
        return {
            "sequence":          self.sequence,
            "event_type":        self.event_type,
            "contract_address":  self.contract_address,
            "timestamp":         self.timestamp,
            "causal_hash":       self.causal_hash,
            "payload":           self.payload,
            "signer_public_key": self.signer_public_key,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_chain_dict()
        data["signature"] = self.signature
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventEnvelope":
        return cls(
            sequence=          data["sequence"],
            event_type=        data["event_type"],
            contract_address=  data["contract_address"],
            timestamp=         data["timestamp"],
            causal_hash=       data["causal_hash"],
            payload=           data.get("payload", {}),
            signer_public_key= data.get("signer_public_key", ""),
            signature=         data.get("signature"),
        )

    # ── Signing & verification ────────────────────────────────

    def sign(self, key_manager: Ed25519KeyManager) -> "EventEnvelope":
        if self.signer_public_key != key_manager.public_key_hex:
            raise ValueError("signer_public_key does not match the signing key")
        self.signature = key_manager.sign(canonicalize(self.to_chain_dict()))
        return self

    @property
    def is_signed(self) -> bool:
        return bool(self.signer_public_key)

    def verify_signature(self) -> bool:
        if not self.is_signed:
            return self.signature is None
        if not self.signature:
            return False
        return Ed25519KeyManager.verify_detached(
            canonicalize(self.to_chain_dict()),
            self.signature,
            self.signer_public_key,
        )

    @staticmethod
    def expected_causal_hash_from(prev: Optional["EventEnvelope"]) -> str:
        if prev is None:
            return GENESIS_HASH
        return canonical_hash(prev.to_chain_dict())

    def verify_chain(self, prev: Optional["EventEnvelope"]) -> bool:
        return self.causal_hash == self.expected_causal_hash_from(prev)


@dataclass
class ChainViolation:
    sequence: int
    kind:     str
    detail:   str


@dataclass
class VerificationReport:
    total_events: int
    by_type:      Dict[str, int]
    signed:       int
    violations:   List[ChainViolation] = field(default_factory=list)
    head_hash:    Optional[str] = None

    @property
    def valid(self) -> bool:
        return not self.violations

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid":        self.valid,
            "total_events": self.total_events,
            "by_type":      dict(self.by_type),
            "signed":       self.signed,
            "head_hash":    self.head_hash,
            "violations": [
                {"sequence": v.sequence, "kind": v.kind, "detail": v.detail}
                for v in self.violations
            ],
        }


def verify_envelopes(envelopes: List[EventEnvelope]) -> VerificationReport:
    """Check sequence, causal chain and signatures of an ordered envelope list."""
    by_type: Dict[str, int] = {}
    violations: List[ChainViolation] = []
    signed = 0

    for i, env in enumerate(envelopes):
        prev = envelopes[i - 1] if i > 0 else None
        by_type[env.event_type] = by_type.get(env.event_type, 0) + 1
        if env.is_signed:
            signed += 1

        if env.sequence != i:
            violations.append(ChainViolation(
                env.sequence, "sequence", f"expected {i}, got {env.sequence}",
            ))
        if env.event_type not in VALID_EVENT_TYPES:
            violations.append(ChainViolation(
                env.sequence, "schema", f"unknown event_type '{env.event_type}'",
            ))
        if not env.verify_chain(prev):
            violations.append(ChainViolation(
                env.sequence, "chain", "causal_hash does not match previous event",
            ))
        if not env.verify_signature():
            violations.append(ChainViolation(
                env.sequence, "signature", "invalid or missing signature",
            ))

    head_hash = canonical_hash(envelopes[-1].to_chain_dict()) if envelopes else None
    return VerificationReport(
        total_events= len(envelopes),
        by_type=      by_type,
        signed=       signed,
        violations=   violations,
        head_hash=    head_hash,
    )


def load_envelopes(path: Path) -> List[EventEnvelope]:
    """
    Read a JSONL event log.
    Raises FileNotFoundError if missing, ValueError on a malformed line.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Event log not found: {path}")
    envelopes: List[EventEnvelope] = []
    with open(path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                envelopes.append(EventEnvelope.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, TypeError) as exc:
                raise ValueError(f"Malformed event at line {line_num}: {exc}") from exc
    return envelopes


class EventLog:
    """
    Append-only, hash-chained event log for one instrument ledger.

    In-memory by default. With a path, every envelope is also appended to
    a JSONL file and existing entries are restored on construction.
    With a key manager, every envelope is signed by the sequencer.
    """

    def __init__(
        self,
        contract_address: str,
        key_manager:      Optional[Ed25519KeyManager] = None,
        path:             Optional[Path] = None,
    ) -> None:
        self.contract_address = contract_address
        self.key_manager      = key_manager

        self._lock:      threading.Lock      = threading.Lock()
        self._envelopes: List[EventEnvelope] = []
        self._path:      Optional[Path]      = Path(path) if path else None

        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._restore()

    # ── Public API ────────────────────────────────────────────

    def emit(self, event_type: str, payload: Dict[str, Any]) -> EventEnvelope:
        """
        Append one event. Raises LedgerError if the write fails; in that
        case the in-memory log does not advance.
        """
        with self._lock:
            prev = self._envelopes[-1] if self._envelopes else None
            envelope = EventEnvelope.create(
                event_type=        event_type,
                contract_address=  self.contract_address,
                sequence=          len(self._envelopes),
                payload=           payload,
                prev=              prev,
                signer_public_key= (
                    self.key_manager.public_key_hex if self.key_manager else ""
                ),
            )
            if self.key_manager is not None:
                envelope.sign(self.key_manager)

            if self._path is not None:
                self._append(envelope)

            self._envelopes.append(envelope)
            return envelope

    def events(
        self,
        event_type: Optional[str] = None,
        start:      int = 0,
    ) -> List[EventEnvelope]:
        """Envelopes with sequence >= start, optionally filtered by type."""
        with self._lock:
            selected = self._envelopes[start:]
        if event_type is None:
            return list(selected)
        return [e for e in selected if e.event_type == event_type]

    def __len__(self) -> int:
        return len(self._envelopes)

    def verify(self) -> VerificationReport:
        with self._lock:
            snapshot = list(self._envelopes)
        return verify_envelopes(snapshot)

    def verify_chain(self) -> bool:
        return self.verify().valid

    # ── Internal ──────────────────────────────────────────────

    def _append(self, envelope: EventEnvelope) -> None:
        try:
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(json.dumps(envelope.to_dict()) + "\n")
        except OSError as exc:
            raise LedgerError(f"Event log write failed: {exc}") from exc

    def _restore(self) -> None:
        if not self._path.exists():
            return
        try:
            self._envelopes = load_envelopes(self._path)
        except ValueError as exc:
            raise LedgerError(
                f"Failed to restore event log {self._path}: {exc}"
            ) from exc
        report = verify_envelopes(self._envelopes)
        if not report.valid:
            warnings.warn(
                f"EventLog: {self._path} has {len(report.violations)} chain "
                "violation(s). New events will chain from the last entry.",
                RuntimeWarning,
                stacklevel=3,
            )
