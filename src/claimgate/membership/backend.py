"""Interface to the group-membership proof system.

The registry and gate never store members or check proofs themselves;
they delegate to a backend implementing this interface. The backend is
responsible for nullifier uniqueness within a group and for deciding
which Merkle roots are still acceptable. A call the backend cannot
complete raises ``MembershipBackendError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class MembershipBackend(ABC):
    """Capability set of an anonymity-group membership system."""

    @abstractmethod
    def create_group(self, group_id: int, depth: int, admin: str) -> None:
        """Provision an empty group of the given tree depth."""

    @abstractmethod
    def add_member(self, group_id: int, commitment: int) -> None:
        """Append an identity commitment to a group."""

    @abstractmethod
    def verify_proof(
        self,
        group_id: int,
        merkle_root: int,
        signal: int,
        nullifier_hash: int,
        external_nullifier: int,
        proof: Any,
    ) -> bool:
        """Check a membership proof and spend its nullifier hash.

        Returns False (never raises) for a proof that does not verify,
        an unknown or expired root, or a nullifier hash already spent.
        Raises ``MembershipBackendError`` only when the backend itself fails.
        """
