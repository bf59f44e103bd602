"""Witness panel model.

An epoch is one immutable panel of witnesses plus the number of them
that must co-sign a claim. Epochs are numbered from 1; the epoch with
the highest id is the current one.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Witness:
    """An attestor: public address plus the host it serves claims from."""
    address: str
    host: str

    def to_dict(self) -> dict[str, str]:
        return {"address": self.address, "host": self.host}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Witness:
        return cls(address=data["address"], host=data["host"])


@dataclass(frozen=True)
class Epoch:
    """A witness panel and its signature threshold.

    ``witnesses`` keeps insertion order; witness selection depends on it.
    """
    id: int
    timestamp_start: int
    timestamp_end: int
    witnesses: tuple[Witness, ...]
    threshold: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp_start": self.timestamp_start,
            "timestamp_end": self.timestamp_end,
            "witnesses": [w.to_dict() for w in self.witnesses],
            "threshold": self.threshold,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Epoch:
        return cls(
            id=int(data["id"]),
            timestamp_start=int(data["timestamp_start"]),
            timestamp_end=int(data["timestamp_end"]),
            witnesses=tuple(Witness.from_dict(w) for w in data["witnesses"]),
            threshold=int(data["threshold"]),
        )
