"""Membership gate — dapp-scoped anonymous membership checks.

The gate only checks that the dapp and the provider's group exist; the
membership backend verifies the proof itself, including nullifier
replay and root freshness.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from claimgate.crypto.hashing import group_id_from_provider
from claimgate.errors import DappNotCreatedError, GroupNotFoundError, InvalidProofError
from claimgate.membership.backend import MembershipBackend
from claimgate.membership.dapp_registry import DappRegistry
from claimgate.models.ledger import LedgerState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProofVerification:
    """Audit fields of an accepted membership proof."""
    group_id: int
    merkle_root: int
    nullifier_hash: int
    external_nullifier: int
    signal: int
    dapp_id: str


class MembershipGate:

    def __init__(
        self,
        state: LedgerState,
        dapps: DappRegistry,
        backend: MembershipBackend,
    ) -> None:
        self._state = state
        self._dapps = dapps
        self._backend = backend

    def verify_membership(
        self,
        provider: str,
        merkle_root: int,
        signal: int,
        nullifier_hash: int,
        external_nullifier: int,
        dapp_id: str,
        proof: Any,
    ) -> ProofVerification:
        dapp = self._dapps.fetch_dapp(dapp_id)
        if dapp is None or dapp.external_nullifier != external_nullifier:
            raise DappNotCreatedError(
                f"Dapp Not Created: {dapp_id} with external nullifier {external_nullifier}"
            )

        group_id = group_id_from_provider(provider)
        group = self._state.groups.get(group_id)
        if group is None or group.provider != provider:
            raise GroupNotFoundError(f"No group for provider {provider!r}")

        accepted = self._backend.verify_proof(
            group_id,
            merkle_root,
            signal,
            nullifier_hash,
            external_nullifier,
            proof,
        )
        if not accepted:
            logger.warning("Membership proof rejected for group %d, dapp %s", group_id, dapp.dapp_id)
            raise InvalidProofError(f"Membership proof rejected for group {group_id}")

        logger.info("Membership proof accepted for group %d, dapp %s", group_id, dapp.dapp_id)
        return ProofVerification(
            group_id=group_id,
            merkle_root=merkle_root,
            nullifier_hash=nullifier_hash,
            external_nullifier=external_nullifier,
            signal=signal,
            dapp_id=dapp.dapp_id,
        )
