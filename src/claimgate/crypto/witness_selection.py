"""Deterministic witness selection.

Given an epoch, a claim identifier and a timestamp, pick the witnesses
that must sign the claim. The result must be byte-identical across
every implementation, so the construction is fixed:

    seed  = keccak256(utf8(identifier "\\n" epoch_id "\\n" threshold "\\n" timestamp_s))
    for i in range(threshold):
        r      = uint32 big-endian at seed[offset:offset + 4]
        index  = r % len(remaining)
        pick remaining[index]
        remaining[index] = remaining[-1]; drop the last element
        offset = (offset + 4) % 32

``identifier`` is hashed as 0x-prefixed lowercase hex text.
"""

from __future__ import annotations

from eth_utils import keccak

from claimgate.crypto.hashing import normalise_identifier
from claimgate.models.epoch import Epoch, Witness


def selection_seed(epoch: Epoch, identifier: str | bytes, timestamp_s: int) -> bytes:
    """The 32-byte seed the draw consumes."""
    complete_input = "\n".join(
        [
            normalise_identifier(identifier),
            str(epoch.id),
            str(epoch.threshold),
            str(timestamp_s),
        ]
    )
    return keccak(complete_input.encode("utf-8"))


def select_witnesses_for_claim(
    epoch: Epoch,
    identifier: str | bytes,
    timestamp_s: int,
) -> list[Witness]:
    """Sample ``epoch.threshold`` witnesses without replacement.

    Pure: the epoch snapshot is never modified.
    """
    seed = selection_seed(epoch, identifier, timestamp_s)
    remaining = list(epoch.witnesses)
    selected: list[Witness] = []

    offset = 0
    for _ in range(epoch.threshold):
        random_value = int.from_bytes(seed[offset:offset + 4], "big")
        index = random_value % len(remaining)
        selected.append(remaining[index])

        remaining[index] = remaining[-1]
        remaining.pop()
        offset = (offset + 4) % len(seed)

    return selected
