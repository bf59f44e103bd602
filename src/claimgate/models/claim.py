"""Claim models.

A claim is an assertion about a user made by a provider. Its identity
is the hash of its three content fields; witnesses sign that identifier
together with the owner, timestamp and epoch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ClaimInfo:
    """Content of a claim.

    ``context`` starts with a 42-character hex address; the rest is a
    free-form message.
    """
    provider: str
    parameters: str
    context: str

    def to_dict(self) -> dict[str, str]:
        return {
            "provider": self.provider,
            "parameters": self.parameters,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClaimInfo:
        return cls(
            provider=data["provider"],
            parameters=data.get("parameters", ""),
            context=data.get("context", ""),
        )


@dataclass(frozen=True)
class SignedClaim:
    """A claim plus the witness signatures over its serialised form.

    ``identifier`` is the value the witnesses signed. It may be omitted,
    in which case it is recomputed from ``claim_info``.
    """
    claim_info: ClaimInfo
    owner: str
    timestamp_s: int
    epoch_id: int
    signatures: tuple[bytes, ...]
    identifier: Optional[str] = None

    @property
    def provider(self) -> str:
        return self.claim_info.provider

    def with_signatures(self, signatures: list[bytes]) -> SignedClaim:
        return SignedClaim(
            claim_info=self.claim_info,
            owner=self.owner,
            timestamp_s=self.timestamp_s,
            epoch_id=self.epoch_id,
            signatures=tuple(signatures),
            identifier=self.identifier,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "claim_info": self.claim_info.to_dict(),
            "owner": self.owner,
            "timestamp_s": self.timestamp_s,
            "epoch_id": self.epoch_id,
            "signatures": ["0x" + bytes(s).hex() for s in self.signatures],
            "identifier": self.identifier,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SignedClaim:
        return cls(
            claim_info=ClaimInfo.from_dict(data["claim_info"]),
            owner=data["owner"],
            timestamp_s=int(data["timestamp_s"]),
            epoch_id=int(data["epoch_id"]),
            signatures=tuple(
                bytes.fromhex(s.removeprefix("0x")) for s in data.get("signatures", [])
            ),
            identifier=data.get("identifier"),
        )
