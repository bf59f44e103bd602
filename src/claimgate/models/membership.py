"""Anonymity group and dapp models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class AnonymityGroup:
    """One group per provider string. Never deleted.

    Members themselves live in the membership backend; the registry only
    tracks how many it has enrolled so capacity can be checked up front.
    """
    group_id: int
    provider: str
    depth: int
    admin: str
    created_utc: str
    member_count: int = 0

    @property
    def capacity(self) -> int:
        return 2 ** self.depth

    def to_dict(self) -> dict[str, Any]:
        return {
            "group_id": self.group_id,
            "provider": self.provider,
            "depth": self.depth,
            "admin": self.admin,
            "created_utc": self.created_utc,
            "member_count": self.member_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnonymityGroup:
        return cls(
            group_id=int(data["group_id"]),
            provider=data["provider"],
            depth=int(data["depth"]),
            admin=data["admin"],
            created_utc=data["created_utc"],
            member_count=int(data.get("member_count", 0)),
        )


@dataclass(frozen=True)
class Dapp:
    """A consuming application, bound to exactly one external nullifier."""
    dapp_id: str
    external_nullifier: int
    creator: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "dapp_id": self.dapp_id,
            "external_nullifier": str(self.external_nullifier),
            "creator": self.creator,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dapp:
        return cls(
            dapp_id=data["dapp_id"],
            external_nullifier=int(data["external_nullifier"]),
            creator=data["creator"],
        )
