"""
privatebonds Access Gate - whitelist and owner checks.
"""

from privatebonds.policy.access import AccessGate

__all__ = ["AccessGate"]
