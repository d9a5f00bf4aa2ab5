"""
privatebonds Exception Hierarchy

All exceptions inherit from PrivateBondsError for easy catching.
Every rejection is raised before any state mutation, so a caller that
catches one of these can always retry with corrected inputs.
"""


class PrivateBondsError(Exception):
    """Base exception for all privatebonds errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigError(PrivateBondsError):
    """Raised when ledger configuration is invalid"""
    pass


class LedgerError(PrivateBondsError):
    """Raised when ledger storage operations fail"""
    pass


class SchemaError(PrivateBondsError):
    """Raised when a transition's public inputs are malformed or inconsistent"""
    pass


# ── Transition rejections ─────────────────────────────────────

class TransitionRejected(PrivateBondsError):
    """Base for every typed rejection of a proposed transition"""
    pass


class InvalidProof(TransitionRejected):
    """Raised when the verifier rejects a proof"""
    pass


class DuplicateNullifier(TransitionRejected):
    """Raised on a double-spend or replay attempt"""
    pass


class StaleOrUnknownRoot(TransitionRejected):
    """Raised when a proof references a root outside the retained history"""
    pass


class NotWhitelisted(TransitionRejected):
    """Raised when a participant is not on the whitelist"""
    pass


class UnauthorizedCaller(TransitionRejected):
    """Raised when a non-owner calls an owner-only operation"""
    pass


class NotMatured(TransitionRejected):
    """Raised when redemption is attempted before maturity"""
    pass


class InstrumentMatured(TransitionRejected):
    """Raised when a transfer is attempted at or after maturity"""
    pass


class SupplyInvariantViolation(TransitionRejected):
    """Raised when an operation would break the active supply policy"""
    pass


class StaleTransition(TransitionRejected):
    """Raised when a prepared transition is committed against a changed state"""
    pass


class CommitmentTreeFull(TransitionRejected):
    """Raised when the commitment tree has no room for a transition's outputs"""
    pass


class AlreadyInitialized(TransitionRejected):
    """Raised when initialize() is called twice"""
    pass


class NotInitialized(TransitionRejected):
    """Raised when a transition arrives before initialize()"""
    pass


# ── Authorization witnesses ───────────────────────────────────

class AuthwitMismatch(TransitionRejected):
    """Raised when the recomputed action hash differs from the committed one"""
    pass


class AuthwitNotFound(TransitionRejected):
    """Raised when no authwit was created for the principal and action hash"""
    pass


class DuplicateAuthwit(TransitionRejected):
    """Raised when the same authwit is created twice"""
    pass


class AuthwitAlreadyConsumed(DuplicateNullifier):
    """Raised when an authwit was already consumed or cancelled"""
    pass


# ── Off-core (holder side) ────────────────────────────────────

class ProofGenerationError(PrivateBondsError):
    """Raised when a witness fails a soundness obligation and cannot be proven"""
    pass


class InsufficientFunds(PrivateBondsError):
    """Raised when a wallet's unspent notes cannot cover an amount"""
    pass
