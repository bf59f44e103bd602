"""The shared store every component reads and writes.

One LedgerState instance holds the four tables of a deployment. It is
passed explicitly to each component; each table is mutated only by the
component that owns it:

- epochs            EpochManager
- groups, merkelized AnonymityGroupRegistry
- dapps, dapp_by_nullifier  DappRegistry
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from claimgate.models.epoch import Epoch
from claimgate.models.membership import AnonymityGroup, Dapp


@dataclass
class LedgerState:
    epochs: dict[int, Epoch] = field(default_factory=dict)
    current_epoch_id: int = 0
    groups: dict[int, AnonymityGroup] = field(default_factory=dict)
    merkelized: set[tuple[str, str]] = field(default_factory=set)
    dapps: dict[str, Dapp] = field(default_factory=dict)
    dapp_by_nullifier: dict[int, str] = field(default_factory=dict)

    def current_epoch(self) -> Optional[Epoch]:
        return self.epochs.get(self.current_epoch_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "epochs": [self.epochs[k].to_dict() for k in sorted(self.epochs)],
            "current_epoch_id": self.current_epoch_id,
            "groups": [self.groups[k].to_dict() for k in sorted(self.groups)],
            "merkelized": [list(key) for key in sorted(self.merkelized)],
            "dapps": [self.dapps[k].to_dict() for k in sorted(self.dapps)],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LedgerState:
        state = cls()
        for raw in data.get("epochs", []):
            epoch = Epoch.from_dict(raw)
            state.epochs[epoch.id] = epoch
        state.current_epoch_id = int(data.get("current_epoch_id", 0))
        for raw in data.get("groups", []):
            group = AnonymityGroup.from_dict(raw)
            state.groups[group.group_id] = group
        state.merkelized = {
            (owner, provider) for owner, provider in data.get("merkelized", [])
        }
        for raw in data.get("dapps", []):
            dapp = Dapp.from_dict(raw)
            state.dapps[dapp.dapp_id] = dapp
            state.dapp_by_nullifier[dapp.external_nullifier] = dapp.dapp_id
        return state
