"""
Commitment Store — append-only incremental Merkle accumulator.

Fixed depth; empty subtrees hash to precomputed zero nodes, so every insert
costs `depth` node hashes. Every computed node is kept so membership paths
can be served for any leaf.

Root history:
    insert() pushes the pre-insert root into a ring of size W.
    is_known_root() accepts the current root or any of the W most recent.
    A proof built against an older root is stale and must be regenerated.

There is no delete and no update.
"""

from collections import deque
from typing import Deque, Dict, List, Tuple

from privatebonds.core.exceptions import LedgerError
from privatebonds.core.hashing import (
    ZERO_DIGEST,
    is_digest,
    merkle_leaf_hash,
    merkle_node_hash,
)


def zero_hashes(depth: int) -> List[str]:
    """zeros[level] is the root of an empty subtree of height `level`."""
    zeros = [merkle_leaf_hash(ZERO_DIGEST)]
    for _ in range(depth):
        zeros.append(merkle_node_hash(zeros[-1], zeros[-1]))
    return zeros


def compute_root(commitment: str, leaf_index: int, path: List[str]) -> str:
    """
    Fold a membership path (siblings bottom-up) into a root.
    Bit i of leaf_index says whether the node at level i is a right child.
    """
    node = merkle_leaf_hash(commitment)
    index = leaf_index
    for sibling in path:
        if index % 2 == 0:
            node = merkle_node_hash(node, sibling)
        else:
            node = merkle_node_hash(sibling, node)
        index //= 2
    return node


class CommitmentStore:

    def __init__(self, depth: int = 20, root_history_size: int = 64) -> None:
        self.depth = depth
        self.root_history_size = root_history_size

        self._zeros:   List[str]            = zero_hashes(depth)
        self._levels:  List[Dict[int, str]] = [dict() for _ in range(depth + 1)]
        self._leaves:  List[str]            = []
        self._root:    str                  = self._zeros[depth]
        self._history: Deque[str]           = deque(maxlen=root_history_size)

    # ── Mutation ──────────────────────────────────────────────

    def insert(self, commitment: str) -> Tuple[int, str]:
        """
        Append a commitment.

        Returns:
            (leaf_index, new_root)
        """
        if not is_digest(commitment):
            raise ValueError(f"commitment must be a 64-char hex digest, got {commitment!r}")
        leaf_index = len(self._leaves)
        if leaf_index >= self.capacity:
            raise LedgerError(
                "Commitment tree is full",
                {"depth": self.depth, "capacity": self.capacity},
            )

        node = merkle_leaf_hash(commitment)
        self._levels[0][leaf_index] = node
        index = leaf_index
        for level in range(self.depth):
            sibling = self._node(level, index ^ 1)
            if index % 2 == 0:
                node = merkle_node_hash(node, sibling)
            else:
                node = merkle_node_hash(sibling, node)
            index //= 2
            self._levels[level + 1][index] = node

        self._history.append(self._root)
        self._leaves.append(commitment)
        self._root = node
        return leaf_index, node

    # ── Queries ───────────────────────────────────────────────

    @property
    def root(self) -> str:
        return self._root

    @property
    def size(self) -> int:
        return len(self._leaves)

    def __len__(self) -> int:
        return len(self._leaves)

    @property
    def capacity(self) -> int:
        return 2 ** self.depth

    @property
    def remaining(self) -> int:
        return self.capacity - len(self._leaves)

    def is_known_root(self, root: str) -> bool:
        if not is_digest(root):
            return False
        return root == self._root or root in self._history

    def leaf(self, leaf_index: int) -> str:
        if not 0 <= leaf_index < len(self._leaves):
            raise IndexError(f"No commitment at leaf index {leaf_index}")
        return self._leaves[leaf_index]

    def index_of(self, commitment: str) -> int:
        """Leaf index of the first occurrence of commitment, -1 if absent."""
        try:
            return self._leaves.index(commitment)
        except ValueError:
            return -1

    def path(self, leaf_index: int) -> List[str]:
        """Sibling hashes from leaf level up to (excluding) the root."""
        if not 0 <= leaf_index < len(self._leaves):
            raise IndexError(f"No commitment at leaf index {leaf_index}")
        siblings: List[str] = []
        index = leaf_index
        for level in range(self.depth):
            siblings.append(self._node(level, index ^ 1))
            index //= 2
        return siblings

    def _node(self, level: int, index: int) -> str:
        return self._levels[level].get(index, self._zeros[level])
