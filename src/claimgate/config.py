"""Deployment configuration.

Values come from, in increasing priority: defaults below, a JSON config
file, and ``CLAIMGATE_*`` environment variables (a ``.env`` file is
loaded first if present). Secrets such as ``private_key`` should only
ever come from the environment.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

ENV_PREFIX = "CLAIMGATE_"


@dataclass
class ProtocolConfig:
    """Parameters of one claimgate deployment.

    operator_address            : str — the only address allowed to add epochs
    default_group_depth         : int — tree depth for groups created on enrollment (20)
    epoch_duration_s            : int — nominal lifetime recorded on each epoch (1 day)
    root_history_duration_s     : int — how long a superseded group root stays valid (1 hour)
    membership_backend          : str — "local" or "contract"
    rpc_url                     : str — JSON-RPC endpoint for the contract backend
    membership_contract_address : str — deployed membership contract
    private_key                 : str — signer for contract transactions
    chain_id                    : int — network chain id (Sepolia)
    data_dir                    : str — where events.jsonl and state.json live
    log_level                   : str — root log level
    """
    operator_address: str = ""
    default_group_depth: int = 20
    epoch_duration_s: int = 24 * 60 * 60
    root_history_duration_s: int = 60 * 60
    membership_backend: str = "local"
    rpc_url: str = ""
    membership_contract_address: str = ""
    private_key: str = ""
    chain_id: int = 11155111
    data_dir: str = "data"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProtocolConfig:
        config = cls()
        for f in fields(cls):
            if f.name in data:
                setattr(config, f.name, _coerce(f.type, data[f.name], f.name))
        return config

    def validate(self) -> list[str]:
        """Return configuration errors. Empty list = usable config."""
        errors: list[str] = []
        if not self.operator_address:
            errors.append("operator_address is required")
        if self.membership_backend not in ("local", "contract"):
            errors.append(
                f"membership_backend must be 'local' or 'contract', got {self.membership_backend!r}"
            )
        if self.membership_backend == "contract":
            for name in ("rpc_url", "membership_contract_address", "private_key"):
                if not getattr(self, name):
                    errors.append(f"{name} is required for the contract backend")
        if self.epoch_duration_s <= 0:
            errors.append("epoch_duration_s must be positive")
        if self.root_history_duration_s < 0:
            errors.append("root_history_duration_s must not be negative")
        return errors


def _coerce(type_name: Any, value: Any, name: str) -> Any:
    if type_name in (int, "int"):
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Config {name} must be an integer, got {value!r}") from e
    return str(value)


def load_config(
    config_path: Optional[Path] = None,
    env_file: Optional[Path] = None,
) -> ProtocolConfig:
    """Build the effective configuration."""
    load_dotenv(env_file)

    data: dict[str, Any] = {}
    if config_path is not None and config_path.exists():
        data.update(json.loads(config_path.read_text(encoding="utf-8")))

    for f in fields(ProtocolConfig):
        env_value = os.getenv(ENV_PREFIX + f.name.upper())
        if env_value is not None:
            data[f.name] = env_value

    return ProtocolConfig.from_dict(data)
