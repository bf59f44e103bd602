"""Epoch manager — witness panel history and witness lookup for claims.

Only the operator may add epochs. Epochs are immutable once added and
are never removed; the newest one is the current panel.

Invariants enforced:
- Epoch ids are sequential from 1.
- 1 <= threshold <= number of witnesses.
- Witness addresses within an epoch are unique.
- Witness order is stored verbatim (selection depends on it).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from eth_utils import is_hex_address, to_checksum_address

from claimgate.crypto.witness_selection import select_witnesses_for_claim
from claimgate.errors import (
    EpochNotFoundError,
    InvalidEpochParametersError,
    NotOwnerError,
)
from claimgate.models.epoch import Epoch, Witness
from claimgate.models.ledger import LedgerState

logger = logging.getLogger(__name__)

DEFAULT_EPOCH_DURATION_S = 24 * 60 * 60


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EpochManager:
    """Owns ``LedgerState.epochs``.

    Usage:
        manager = EpochManager(state, operator="0xOperator...")
        epoch = manager.add_epoch(witnesses, threshold=5, caller=operator)
        current = manager.fetch_epoch(0)
        panel = manager.fetch_witnesses_for_claim(epoch.id, identifier, ts)
    """

    def __init__(
        self,
        state: LedgerState,
        operator: str,
        clock: Optional[Callable[[], datetime]] = None,
        epoch_duration_s: int = DEFAULT_EPOCH_DURATION_S,
    ) -> None:
        if not is_hex_address(operator):
            raise ValueError(f"Operator must be a hex address, got {operator!r}")
        self._state = state
        self._operator = to_checksum_address(operator)
        self._clock = clock or _utc_now
        self._epoch_duration_s = epoch_duration_s

    @property
    def operator(self) -> str:
        return self._operator

    def add_epoch(
        self,
        witnesses: list[Witness],
        threshold: int,
        caller: str,
    ) -> Epoch:
        """Append a new witness panel and make it current."""
        if not is_hex_address(caller) or to_checksum_address(caller) != self._operator:
            raise NotOwnerError(f"Caller {caller} is not the operator")

        if not witnesses:
            raise InvalidEpochParametersError("Epoch needs at least one witness")
        if threshold < 1:
            raise InvalidEpochParametersError(
                f"Threshold must be at least 1, got {threshold}"
            )
        if threshold > len(witnesses):
            raise InvalidEpochParametersError(
                f"Threshold {threshold} exceeds witness count {len(witnesses)}"
            )

        normalised: list[Witness] = []
        seen: set[str] = set()
        for idx, witness in enumerate(witnesses):
            if not is_hex_address(witness.address):
                raise InvalidEpochParametersError(
                    f"witness[{idx}] address {witness.address!r} is not a hex address"
                )
            address = to_checksum_address(witness.address)
            if address in seen:
                raise InvalidEpochParametersError(
                    f"witness[{idx}] duplicates address {address}"
                )
            seen.add(address)
            normalised.append(Witness(address=address, host=witness.host))

        start = int(self._clock().timestamp())
        epoch = Epoch(
            id=self._state.current_epoch_id + 1,
            timestamp_start=start,
            timestamp_end=start + self._epoch_duration_s,
            witnesses=tuple(normalised),
            threshold=threshold,
        )
        self._state.epochs[epoch.id] = epoch
        self._state.current_epoch_id = epoch.id

        logger.info(
            "Epoch %d added: %d witnesses, threshold %d",
            epoch.id, len(epoch.witnesses), epoch.threshold,
        )
        return epoch

    def fetch_epoch(self, epoch_id: int) -> Epoch:
        """Return an epoch by id; 0 means the current epoch."""
        if epoch_id == 0:
            epoch = self._state.current_epoch()
            if epoch is None:
                raise EpochNotFoundError("No epoch has been added yet")
            return epoch
        epoch = self._state.epochs.get(epoch_id)
        if epoch is None:
            raise EpochNotFoundError(f"Epoch not found: {epoch_id}")
        return epoch

    def fetch_witnesses_for_claim(
        self,
        epoch_id: int,
        identifier: str | bytes,
        timestamp_s: int,
    ) -> list[Witness]:
        """The witnesses expected to sign a claim in the given epoch."""
        epoch = self.fetch_epoch(epoch_id)
        return select_witnesses_for_claim(epoch, identifier, timestamp_s)
