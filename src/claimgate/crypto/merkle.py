"""Incremental Merkle tree over field elements.

Fixed depth, append-only, keccak-based node hashing. Empty positions
hold a per-tree zero value, so the root of a tree is defined for every
member count and two trees with the same zero value and leaves always
agree. Leaves keep insertion order (a member's index is its position).
"""

from __future__ import annotations

from dataclasses import dataclass

from claimgate.crypto.hashing import SNARK_SCALAR_FIELD, hash_field_pair


@dataclass(frozen=True)
class MerkleProof:
    """An inclusion proof for a single leaf.

    ``path_indices[i]`` is 1 when the node at level i is a right child.
    """
    leaf: int
    siblings: tuple[int, ...]
    path_indices: tuple[int, ...]
    root: int


class IncrementalMerkleTree:
    """Append-only binary Merkle tree of fixed depth.

    Usage:
        tree = IncrementalMerkleTree(depth=20, zero_value=z)
        index = tree.insert(commitment)
        proof = tree.inclusion_proof(index)
        assert IncrementalMerkleTree.verify_proof(proof)
    """

    def __init__(self, depth: int, zero_value: int = 0) -> None:
        if depth < 1:
            raise ValueError(f"Tree depth must be positive, got {depth}")
        self._depth = depth
        self._zeros: list[int] = [zero_value]
        for _ in range(depth):
            self._zeros.append(hash_field_pair(self._zeros[-1], self._zeros[-1]))
        self._nodes: list[list[int]] = [[] for _ in range(depth + 1)]
        self._root = self._zeros[depth]

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def root(self) -> int:
        return self._root

    @property
    def capacity(self) -> int:
        return 2 ** self._depth

    @property
    def leaf_count(self) -> int:
        return len(self._nodes[0])

    @property
    def leaves(self) -> list[int]:
        return list(self._nodes[0])

    def insert(self, leaf: int) -> int:
        """Append a leaf and update the root. Returns the leaf index."""
        if not 0 <= leaf < SNARK_SCALAR_FIELD:
            raise ValueError("Leaf must be a scalar field element")
        if self.leaf_count >= self.capacity:
            raise ValueError(f"Tree is full ({self.capacity} leaves)")

        index = self.leaf_count
        self._nodes[0].append(leaf)

        node = leaf
        position = index
        for level in range(self._depth):
            if position % 2 == 0:
                node = hash_field_pair(node, self._zeros[level])
            else:
                node = hash_field_pair(self._nodes[level][position - 1], node)
            position //= 2
            parents = self._nodes[level + 1]
            if position < len(parents):
                parents[position] = node
            else:
                parents.append(node)

        self._root = node
        return index

    def index_of(self, leaf: int) -> int:
        """Index of the first occurrence of ``leaf``, or -1."""
        try:
            return self._nodes[0].index(leaf)
        except ValueError:
            return -1

    def inclusion_proof(self, index: int) -> MerkleProof:
        """Build the authentication path for the leaf at ``index``."""
        if not 0 <= index < self.leaf_count:
            raise IndexError(f"No leaf at index {index}")

        siblings: list[int] = []
        path_indices: list[int] = []
        position = index
        for level in range(self._depth):
            sibling = position ^ 1
            level_nodes = self._nodes[level]
            siblings.append(
                level_nodes[sibling] if sibling < len(level_nodes) else self._zeros[level]
            )
            path_indices.append(position % 2)
            position //= 2

        return MerkleProof(
            leaf=self._nodes[0][index],
            siblings=tuple(siblings),
            path_indices=tuple(path_indices),
            root=self._root,
        )

    @staticmethod
    def compute_root(leaf: int, siblings: tuple[int, ...], path_indices: tuple[int, ...]) -> int:
        """Fold an authentication path up to its root."""
        if len(siblings) != len(path_indices):
            raise ValueError("Siblings and path indices differ in length")
        node = leaf
        for sibling, is_right in zip(siblings, path_indices):
            if is_right:
                node = hash_field_pair(sibling, node)
            else:
                node = hash_field_pair(node, sibling)
        return node

    @staticmethod
    def verify_proof(proof: MerkleProof) -> bool:
        return (
            IncrementalMerkleTree.compute_root(proof.leaf, proof.siblings, proof.path_indices)
            == proof.root
        )
