"""Anonymity group registry — one group per provider, enrollment of claim holders.

A holder of a verified claim enrolls an identity commitment in the
group of the claim's provider ("merkelization"). Each (owner, provider)
pair may enroll once, ever, whatever commitment it supplies.

Every precondition is checked before the first write, so a failed
enrollment leaves no member and no record behind. The one exception is a
backend that provisions a new group and then fails to add the member:
the group exists on the backend, so it is kept in the ledger too.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from claimgate.crypto.hashing import SNARK_SCALAR_FIELD, group_id_from_provider
from claimgate.engine.claim_verifier import ClaimVerification, ClaimVerifier
from claimgate.errors import (
    GroupAlreadyExistsError,
    GroupFullError,
    InvalidCommitmentError,
    MembershipBackendError,
    UnsupportedTreeDepthError,
    UserAlreadyMerkelizedError,
)
from claimgate.membership.backend import MembershipBackend
from claimgate.models.claim import SignedClaim
from claimgate.models.ledger import LedgerState
from claimgate.models.membership import AnonymityGroup

logger = logging.getLogger(__name__)

MIN_TREE_DEPTH = 16
MAX_TREE_DEPTH = 32
DEFAULT_TREE_DEPTH = 20


@dataclass(frozen=True)
class Enrollment:
    """Outcome of a successful merkelization."""
    group: AnonymityGroup
    group_created: bool
    owner: str
    provider: str
    commitment: int
    verification: ClaimVerification


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AnonymityGroupRegistry:
    """Owns ``LedgerState.groups`` and ``LedgerState.merkelized``."""

    def __init__(
        self,
        state: LedgerState,
        verifier: ClaimVerifier,
        backend: MembershipBackend,
        admin: str,
        default_depth: int = DEFAULT_TREE_DEPTH,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._state = state
        self._verifier = verifier
        self._backend = backend
        self._admin = admin
        self._default_depth = default_depth
        self._clock = clock or _utc_now

    @staticmethod
    def group_id_from_provider(provider: str) -> int:
        return group_id_from_provider(provider)

    def get_group(self, provider: str) -> Optional[AnonymityGroup]:
        group = self._state.groups.get(group_id_from_provider(provider))
        if group is None or group.provider != provider:
            return None
        return group

    def create_group(self, provider: str, depth: int) -> AnonymityGroup:
        """Provision the group for ``provider``. Open to any caller."""
        group_id = group_id_from_provider(provider)
        self._check_can_create(group_id, provider, depth)
        group = self._provision_backend(group_id, provider, depth)
        self._state.groups[group_id] = group
        return group

    def merkelize_user(self, signed_claim: SignedClaim, commitment: int) -> Enrollment:
        """Enroll ``commitment`` in the claim provider's group.

        Creates the group (at the default depth) if it does not exist yet.
        """
        verification = self._verifier.verify_claim(signed_claim)

        if not 0 < commitment < SNARK_SCALAR_FIELD:
            raise InvalidCommitmentError(
                "Identity commitment must be a non-zero scalar field element"
            )

        provider = signed_claim.provider
        owner = signed_claim.owner.lower()
        key = (owner, provider)
        if key in self._state.merkelized:
            raise UserAlreadyMerkelizedError(
                f"{owner} is already enrolled for provider {provider!r}"
            )

        group_id = group_id_from_provider(provider)
        group = self._state.groups.get(group_id)
        if group is None:
            self._check_can_create(group_id, provider, self._default_depth)
        elif group.provider != provider:
            raise GroupAlreadyExistsError(
                f"Group {group_id} belongs to provider {group.provider!r}, not {provider!r}"
            )
        elif group.member_count >= group.capacity:
            raise GroupFullError(f"Group {group_id} is full ({group.capacity} members)")

        group_created = group is None
        if group is None:
            group = self._provision_backend(group_id, provider, self._default_depth)

        try:
            self._backend.add_member(group_id, commitment)
        except MembershipBackendError as e:
            if group_created:
                # The backend keeps the group even though enrollment failed.
                self._state.groups[group_id] = group
                e.provisioned_group = group
            logger.warning("Enrollment of %s in group %d failed: %s", owner, group_id, e)
            raise

        if group_created:
            self._state.groups[group_id] = group
        group.member_count += 1
        self._state.merkelized.add(key)

        logger.info(
            "Enrolled %s in group %d (provider %r, member %d)",
            owner, group_id, provider, group.member_count,
        )
        return Enrollment(
            group=group,
            group_created=group_created,
            owner=owner,
            provider=provider,
            commitment=commitment,
            verification=verification,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_can_create(self, group_id: int, provider: str, depth: int) -> None:
        if group_id in self._state.groups:
            raise GroupAlreadyExistsError(
                f"Group {group_id} already exists for provider "
                f"{self._state.groups[group_id].provider!r}"
            )
        if not MIN_TREE_DEPTH <= depth <= MAX_TREE_DEPTH:
            raise UnsupportedTreeDepthError(
                f"Tree depth {depth} outside [{MIN_TREE_DEPTH}, {MAX_TREE_DEPTH}]"
            )

    def _provision_backend(self, group_id: int, provider: str, depth: int) -> AnonymityGroup:
        """Create the group on the backend; the caller records it in the ledger."""
        self._backend.create_group(group_id, depth, self._admin)
        logger.info("Group %d created for provider %r (depth %d)", group_id, provider, depth)
        return AnonymityGroup(
            group_id=group_id,
            provider=provider,
            depth=depth,
            admin=self._admin,
            created_utc=self._clock().strftime("%Y-%m-%dT%H:%M:%SZ"),
        )
