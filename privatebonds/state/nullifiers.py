"""
Nullifier Set — the only double-spend and replay guard.

Note nullifiers and authwit nullifiers land in the same set, so "spent
once" and "authorized action used once" are the same check. Re-insertion
always raises; it is never silently ignored.
"""

from typing import Iterator, List, Set

from privatebonds.core.exceptions import DuplicateNullifier
from privatebonds.core.hashing import is_digest


class NullifierSet:

    def __init__(self) -> None:
        self._members: Set[str]  = set()
        self._order:   List[str] = []

    def insert(self, nullifier: str) -> None:
        if not is_digest(nullifier):
            raise ValueError(f"nullifier must be a 64-char hex digest, got {nullifier!r}")
        if nullifier in self._members:
            raise DuplicateNullifier(
                "Nullifier already published",
                {"nullifier": nullifier},
            )
        self._members.add(nullifier)
        self._order.append(nullifier)

    def contains(self, nullifier: str) -> bool:
        return nullifier in self._members

    def __contains__(self, nullifier: str) -> bool:
        return nullifier in self._members

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._order))
