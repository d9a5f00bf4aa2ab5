"""
Access gate — whitelist and owner checks.

Read-only against LedgerState. Consulted synchronously before any
mutation:
    distribute / issue / transfer   recipient must be whitelisted
    redeem                          redeemer must be whitelisted
    administrative operations       caller must be the owner
"""

from privatebonds.core.exceptions import NotWhitelisted, UnauthorizedCaller
from privatebonds.state.state import LedgerState


class AccessGate:

    def __init__(self, state: LedgerState) -> None:
        self._state = state

    def require_whitelisted(self, address: str) -> None:
        if not self._state.is_whitelisted(address):
            raise NotWhitelisted(
                "Address is not whitelisted",
                {"address": address},
            )

    def require_owner(self, address: str) -> None:
        if address != self._state.owner:
            raise UnauthorizedCaller(
                "Caller is not the owner",
                {"caller": address},
            )
