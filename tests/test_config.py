"""Tests for configuration loading."""

import json
from dataclasses import fields
from pathlib import Path

import pytest

from claimgate.config import ProtocolConfig, load_config


OPERATOR = "0x" + "ab" * 20


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mark every CLAIMGATE_* variable so a dotenv load is undone after the test."""
    for f in fields(ProtocolConfig):
        name = "CLAIMGATE_" + f.name.upper()
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


class TestProtocolConfig:
    def test_defaults(self) -> None:
        config = ProtocolConfig()
        assert config.default_group_depth == 20
        assert config.epoch_duration_s == 86400
        assert config.root_history_duration_s == 3600
        assert config.membership_backend == "local"
        assert config.chain_id == 11155111

    def test_from_dict_coerces(self) -> None:
        config = ProtocolConfig.from_dict({"default_group_depth": "24", "operator_address": OPERATOR})
        assert config.default_group_depth == 24

    def test_from_dict_bad_int(self) -> None:
        with pytest.raises(ValueError, match="integer"):
            ProtocolConfig.from_dict({"chain_id": "sepolia"})

    def test_validate_requires_operator(self) -> None:
        assert "operator_address is required" in ProtocolConfig().validate()

    def test_validate_contract_backend_needs_rpc(self) -> None:
        errors = ProtocolConfig(operator_address=OPERATOR, membership_backend="contract").validate()
        assert len(errors) == 3

    def test_validate_unknown_backend(self) -> None:
        errors = ProtocolConfig(operator_address=OPERATOR, membership_backend="zk").validate()
        assert any("membership_backend" in e for e in errors)

    def test_valid(self) -> None:
        assert ProtocolConfig(operator_address=OPERATOR).validate() == []


class TestLoadConfig:
    def test_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "claimgate.json"
        path.write_text(json.dumps({"operator_address": OPERATOR, "log_level": "DEBUG"}))
        config = load_config(path, env_file=tmp_path / "missing.env")
        assert config.operator_address == OPERATOR
        assert config.log_level == "DEBUG"

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "nope.json", env_file=tmp_path / "missing.env")
        assert config.operator_address == ""

    def test_environment_overrides_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = tmp_path / "claimgate.json"
        path.write_text(json.dumps({"operator_address": OPERATOR, "default_group_depth": 20}))
        monkeypatch.setenv("CLAIMGATE_DEFAULT_GROUP_DEPTH", "18")
        config = load_config(path, env_file=tmp_path / "missing.env")
        assert config.default_group_depth == 18

    def test_dotenv_file(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text(f"CLAIMGATE_OPERATOR_ADDRESS={OPERATOR}\nCLAIMGATE_CHAIN_ID=1\n")
        config = load_config(None, env_file=env_file)
        assert config.operator_address == OPERATOR
        assert config.chain_id == 1
