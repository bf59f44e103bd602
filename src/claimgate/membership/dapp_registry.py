"""Dapp registry — binds consuming applications to their external nullifiers."""

from __future__ import annotations

import logging
from typing import Optional

from eth_utils import is_hex_address, to_checksum_address

from claimgate.crypto.hashing import dapp_id_for
from claimgate.errors import DappAlreadyExistsError
from claimgate.models.ledger import LedgerState
from claimgate.models.membership import Dapp

logger = logging.getLogger(__name__)

_UINT256_LIMIT = 2 ** 256


class DappRegistry:
    """Owns ``LedgerState.dapps`` and its nullifier index.

    An external nullifier can be registered once. The dapp id is derived
    from (creator, external nullifier), so it is never reused.
    """

    def __init__(self, state: LedgerState) -> None:
        self._state = state

    def create_dapp(self, external_nullifier: int, creator: str) -> Dapp:
        if not 0 <= external_nullifier < _UINT256_LIMIT:
            raise ValueError("External nullifier must fit in uint256")
        if not is_hex_address(creator):
            raise ValueError(f"Creator must be a hex address, got {creator!r}")
        existing = self.dapp_for_nullifier(external_nullifier)
        if existing is not None:
            raise DappAlreadyExistsError(
                f"Dapp Already Exists for external nullifier {external_nullifier}: "
                f"{existing.dapp_id}"
            )

        creator = to_checksum_address(creator)
        dapp = Dapp(
            dapp_id=dapp_id_for(creator, external_nullifier),
            external_nullifier=external_nullifier,
            creator=creator,
        )
        self._state.dapps[dapp.dapp_id] = dapp
        self._state.dapp_by_nullifier[external_nullifier] = dapp.dapp_id

        logger.info("Dapp %s created by %s", dapp.dapp_id, creator)
        return dapp

    def fetch_dapp(self, dapp_id: str) -> Optional[Dapp]:
        return self._state.dapps.get(dapp_id.lower())

    def dapp_for_nullifier(self, external_nullifier: int) -> Optional[Dapp]:
        dapp_id = self._state.dapp_by_nullifier.get(external_nullifier)
        return self._state.dapps.get(dapp_id) if dapp_id else None
