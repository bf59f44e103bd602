"""State store — JSON snapshot of the ledger tables.

Stores and recovers:
- Epoch table (by id) and the current-epoch pointer
- Anonymity group table (by group id)
- Merkelization records (owner, provider)
- Dapp table (by dapp id; the nullifier index is rebuilt on load)

This is a simple file-based store suitable for single-node deployment.
The snapshot is written to a temporary file and renamed into place so a
crash mid-write never leaves a truncated snapshot.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from claimgate.models.ledger import LedgerState


class StateStore:
    """JSON file-based state persistence.

    Usage:
        store = StateStore(Path("data/state.json"))
        store.save_state(state)

        # On recovery:
        state = store.load_state()
    """

    def __init__(self, storage_path: Path) -> None:
        self._path = storage_path

    @property
    def path(self) -> Path:
        return self._path

    def save_state(self, state: LedgerState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(state.to_dict(), f, indent=2, sort_keys=True, ensure_ascii=False)
        os.replace(tmp, self._path)

    def load_state(self) -> LedgerState:
        if not self._path.exists():
            return LedgerState()
        with self._path.open("r", encoding="utf-8") as f:
            return LedgerState.from_dict(json.load(f))
