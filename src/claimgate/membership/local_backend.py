"""In-process membership backend with a transparent development prover.

Groups are incremental keccak Merkle trees kept in memory. Proofs are
*transparent*: they carry the prover's identity secrets and Merkle
path, which the verifier checks directly. This gives the same accept /
reject behaviour as a zero-knowledge verifier (membership, nullifier
binding, signal binding, root freshness, replay) but reveals who the
prover is. Use it for development and tests; deployments plug a real
prover-backed system in through ``MembershipBackend``.

Identity scheme:
    commitment     = H(identity_nullifier, identity_trapdoor)
    nullifier_hash = H(external_nullifier, identity_nullifier)
    signal_hash    = keccak(signal) >> 8
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from claimgate.crypto.hashing import SNARK_SCALAR_FIELD, hash_field_pair, hash_to_field
from claimgate.crypto.merkle import IncrementalMerkleTree
from claimgate.errors import MembershipBackendError
from claimgate.membership.backend import MembershipBackend

logger = logging.getLogger(__name__)

DEFAULT_ROOT_HISTORY_DURATION_S = 60 * 60

_UINT256_LIMIT = 2 ** 256


def group_zero_value(group_id: int) -> int:
    """Value of an empty leaf in a group's tree."""
    return hash_to_field(group_id)


def new_group_tree(group_id: int, depth: int) -> IncrementalMerkleTree:
    """An empty tree laid out exactly like the backend's copy of the group."""
    return IncrementalMerkleTree(depth=depth, zero_value=group_zero_value(group_id))


@dataclass(frozen=True)
class Identity:
    """A member's secret pair. Only the commitment is ever enrolled."""
    trapdoor: int
    nullifier: int

    @classmethod
    def generate(cls) -> Identity:
        return cls(
            trapdoor=1 + secrets.randbelow(SNARK_SCALAR_FIELD - 1),
            nullifier=1 + secrets.randbelow(SNARK_SCALAR_FIELD - 1),
        )

    @property
    def commitment(self) -> int:
        return hash_field_pair(self.nullifier, self.trapdoor)


@dataclass(frozen=True)
class TransparentProof:
    identity_nullifier: int
    identity_trapdoor: int
    siblings: tuple[int, ...]
    path_indices: tuple[int, ...]
    signal_hash: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "identity_nullifier": str(self.identity_nullifier),
            "identity_trapdoor": str(self.identity_trapdoor),
            "siblings": [str(s) for s in self.siblings],
            "path_indices": list(self.path_indices),
            "signal_hash": str(self.signal_hash),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransparentProof:
        return cls(
            identity_nullifier=int(data["identity_nullifier"]),
            identity_trapdoor=int(data["identity_trapdoor"]),
            siblings=tuple(int(s) for s in data["siblings"]),
            path_indices=tuple(int(i) for i in data["path_indices"]),
            signal_hash=int(data["signal_hash"]),
        )


@dataclass(frozen=True)
class FullProof:
    """Public inputs plus proof, as handed to ``verify_membership``."""
    merkle_root: int
    signal: int
    nullifier_hash: int
    external_nullifier: int
    proof: TransparentProof

    def to_dict(self) -> dict[str, Any]:
        return {
            "merkle_root": str(self.merkle_root),
            "signal": str(self.signal),
            "nullifier_hash": str(self.nullifier_hash),
            "external_nullifier": str(self.external_nullifier),
            "proof": self.proof.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FullProof:
        return cls(
            merkle_root=int(data["merkle_root"]),
            signal=int(data["signal"]),
            nullifier_hash=int(data["nullifier_hash"]),
            external_nullifier=int(data["external_nullifier"]),
            proof=TransparentProof.from_dict(data["proof"]),
        )


def generate_proof(
    identity: Identity,
    tree: IncrementalMerkleTree,
    external_nullifier: int,
    signal: int,
) -> FullProof:
    """Prove that ``identity`` is a member of ``tree``.

    Raises ValueError if the identity's commitment is not in the tree.
    """
    index = tree.index_of(identity.commitment)
    if index < 0:
        raise ValueError("Identity commitment is not a member of the tree")
    path = tree.inclusion_proof(index)
    return FullProof(
        merkle_root=path.root,
        signal=signal,
        nullifier_hash=hash_field_pair(external_nullifier, identity.nullifier),
        external_nullifier=external_nullifier,
        proof=TransparentProof(
            identity_nullifier=identity.nullifier,
            identity_trapdoor=identity.trapdoor,
            siblings=path.siblings,
            path_indices=path.path_indices,
            signal_hash=hash_to_field(signal),
        ),
    )


@dataclass
class _GroupState:
    admin: str
    tree: IncrementalMerkleTree
    root_created_s: dict[int, float] = field(default_factory=dict)
    spent_nullifier_hashes: set[int] = field(default_factory=set)


class LocalMembershipBackend(MembershipBackend):
    """Membership system held in process memory.

    A root other than the current one is accepted for
    ``root_history_duration_s`` seconds after it was created.
    """

    def __init__(
        self,
        root_history_duration_s: int = DEFAULT_ROOT_HISTORY_DURATION_S,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._root_history_duration_s = root_history_duration_s
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._groups: dict[int, _GroupState] = {}

    def create_group(self, group_id: int, depth: int, admin: str) -> None:
        if group_id in self._groups:
            raise MembershipBackendError(f"Group already provisioned: {group_id}")
        self._groups[group_id] = _GroupState(
            admin=admin, tree=new_group_tree(group_id, depth)
        )

    def add_member(
        self, group_id: int, commitment: int, created_s: Optional[float] = None,
    ) -> None:
        """Append ``commitment``; the new root is stamped ``created_s`` (default: now).

        Rebuilding from a log passes the original enrollment time so old
        roots expire on their original schedule.
        """
        group = self._require_group(group_id)
        try:
            group.tree.insert(commitment)
        except ValueError as e:
            raise MembershipBackendError(f"Cannot add member to group {group_id}: {e}") from e
        if created_s is None:
            created_s = self._clock().timestamp()
        group.root_created_s[group.tree.root] = created_s

    def verify_proof(
        self,
        group_id: int,
        merkle_root: int,
        signal: int,
        nullifier_hash: int,
        external_nullifier: int,
        proof: Any,
    ) -> bool:
        group = self._groups.get(group_id)
        if group is None:
            logger.debug("Proof rejected: group %d not provisioned", group_id)
            return False

        if merkle_root != group.tree.root:
            created = group.root_created_s.get(merkle_root)
            if created is None:
                logger.debug("Proof rejected: unknown root for group %d", group_id)
                return False
            if self._clock().timestamp() > created + self._root_history_duration_s:
                logger.debug("Proof rejected: expired root for group %d", group_id)
                return False

        if nullifier_hash in group.spent_nullifier_hashes:
            logger.debug("Proof rejected: nullifier hash already spent in group %d", group_id)
            return False

        if not isinstance(proof, TransparentProof):
            logger.debug("Proof rejected: unsupported proof type %s", type(proof).__name__)
            return False
        if len(proof.siblings) != group.tree.depth:
            logger.debug("Proof rejected: path length does not match tree depth")
            return False
        words = (
            signal,
            external_nullifier,
            proof.identity_nullifier,
            proof.identity_trapdoor,
            *proof.siblings,
        )
        if any(not 0 <= w < _UINT256_LIMIT for w in words):
            logger.debug("Proof rejected: value outside uint256 range")
            return False

        commitment = hash_field_pair(proof.identity_nullifier, proof.identity_trapdoor)
        try:
            root = IncrementalMerkleTree.compute_root(
                commitment, proof.siblings, proof.path_indices
            )
        except ValueError:
            logger.debug("Proof rejected: malformed Merkle path")
            return False
        if root != merkle_root:
            logger.debug("Proof rejected: path does not lead to root")
            return False
        if hash_field_pair(external_nullifier, proof.identity_nullifier) != nullifier_hash:
            logger.debug("Proof rejected: nullifier hash not bound to identity")
            return False
        if proof.signal_hash != hash_to_field(signal):
            logger.debug("Proof rejected: signal mismatch")
            return False

        group.spent_nullifier_hashes.add(nullifier_hash)
        return True

    # ------------------------------------------------------------------
    # Read access and recovery
    # ------------------------------------------------------------------

    def has_group(self, group_id: int) -> bool:
        return group_id in self._groups

    def group_root(self, group_id: int) -> int:
        return self._require_group(group_id).tree.root

    def group_members(self, group_id: int) -> list[int]:
        return self._require_group(group_id).tree.leaves

    def mark_nullifier_spent(self, group_id: int, nullifier_hash: int) -> None:
        """Re-apply a spent nullifier when rebuilding from the event log."""
        self._require_group(group_id).spent_nullifier_hashes.add(nullifier_hash)

    def _require_group(self, group_id: int) -> _GroupState:
        group = self._groups.get(group_id)
        if group is None:
            raise MembershipBackendError(f"Group not provisioned: {group_id}")
        return group
