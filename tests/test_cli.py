"""Tests for the claimgate CLI — proves commands dispatch and state survives between runs."""

import json
from pathlib import Path

import pytest

from claimgate.cli import build_parser, main
from claimgate.crypto.hashing import group_id_from_provider, hash_claim_info
from claimgate.engine.claim_verifier import sign_claim
from claimgate.membership.local_backend import Identity, generate_proof, new_group_tree
from claimgate.models.claim import ClaimInfo, SignedClaim
from claimgate.persistence.event_log import EventKind, EventLog

from conftest import OPERATOR, OWNER, WITNESS_ACCOUNTS, account, witnesses_for


PROVIDER = "google-account"


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "claimgate.json").write_text(json.dumps({
        "operator_address": OPERATOR.address,
        "data_dir": str(tmp_path / "data"),
        "log_level": "WARNING",
    }))
    (tmp_path / "witnesses.json").write_text(
        json.dumps([w.to_dict() for w in witnesses_for(WITNESS_ACCOUNTS)])
    )
    return tmp_path


def _run(workspace: Path, *argv: str) -> int:
    return main(["--config", str(workspace / "claimgate.json"), *argv])


def _last_json(capsys) -> dict:
    return json.loads(capsys.readouterr().out)


class TestCLIParsing:
    def test_status_command(self) -> None:
        args = build_parser().parse_args(["status"])
        assert args.command == "status"

    def test_add_epoch_command(self) -> None:
        args = build_parser().parse_args(
            ["add-epoch", "--witnesses", "w.json", "--threshold", "5"]
        )
        assert args.threshold == 5
        assert args.witnesses == Path("w.json")
        assert args.caller is None

    def test_verify_membership_command(self) -> None:
        args = build_parser().parse_args([
            "verify-membership", "--provider", "p", "--dapp-id", "0x01", "--proof", "proof.json",
        ])
        assert args.dapp_id == "0x01"

    def test_create_group_default_depth(self) -> None:
        args = build_parser().parse_args(["create-group", "--provider", "p"])
        assert args.depth == 20


class TestCLIExecution:
    def test_no_command_shows_help(self) -> None:
        assert main([]) == 0

    def test_hash_claim(self, capsys) -> None:
        assert main(["hash-claim", "--provider", "p", "--parameters", "q", "--context", "r"]) == 0
        assert capsys.readouterr().out.strip() == hash_claim_info(ClaimInfo("p", "q", "r"))

    def test_group_id(self, capsys) -> None:
        assert main(["group-id", "--provider", PROVIDER]) == 0
        assert int(capsys.readouterr().out) == group_id_from_provider(PROVIDER)

    def test_status_runs(self, workspace: Path, capsys) -> None:
        assert _run(workspace, "status") == 0
        assert _last_json(capsys)["operator"] == OPERATOR.address

    def test_missing_operator_fails(self, tmp_path: Path, capsys) -> None:
        config = tmp_path / "claimgate.json"
        config.write_text(json.dumps({"data_dir": str(tmp_path / "data")}))
        assert main(["--config", str(config), "status"]) == 1
        assert "operator_address" in capsys.readouterr().err

    def test_non_operator_add_epoch(self, workspace: Path, capsys) -> None:
        code = _run(
            workspace, "add-epoch", "--witnesses", str(workspace / "witnesses.json"),
            "--threshold", "2", "--caller", account(8).address,
        )
        assert code == 1
        assert "Failed" in capsys.readouterr().err

    def test_fetch_unknown_epoch(self, workspace: Path) -> None:
        assert _run(workspace, "fetch-epoch", "--id", "3") == 1

    def test_end_to_end(self, workspace: Path, capsys) -> None:
        assert _run(
            workspace, "add-epoch", "--witnesses", str(workspace / "witnesses.json"),
            "--threshold", "2",
        ) == 0
        assert _last_json(capsys)["epoch"]["id"] == 1

        info = ClaimInfo(provider=PROVIDER, parameters="{}", context="")
        identifier = hash_claim_info(info)
        assert _run(
            workspace, "fetch-witnesses", "--identifier", identifier, "--timestamp", "100"
        ) == 0
        selected = _last_json(capsys)["witnesses"]
        keys = {a.address: a.key for a in WITNESS_ACCOUNTS}
        claim = SignedClaim(
            claim_info=info,
            owner=OWNER.address,
            timestamp_s=100,
            epoch_id=1,
            signatures=tuple(
                sign_claim(keys[w["address"]], identifier, OWNER.address, 100, 1)
                for w in selected
            ),
            identifier=identifier,
        )
        (workspace / "claim.json").write_text(json.dumps(claim.to_dict()))

        identity = Identity(trapdoor=12, nullifier=34)
        assert _run(
            workspace, "merkelize", "--claim", str(workspace / "claim.json"),
            "--commitment", str(identity.commitment),
        ) == 0
        assert _last_json(capsys)["group_created"]

        assert _run(
            workspace, "create-dapp", "--external-nullifier", "0x2a",
            "--creator", account(901).address,
        ) == 0
        dapp_id = _last_json(capsys)["dapp_id"]

        group_id = group_id_from_provider(PROVIDER)
        tree = new_group_tree(group_id, 20)
        for event in EventLog(workspace / "data" / "events.jsonl").events(EventKind.MEMBER_ENROLLED):
            tree.insert(int(event.payload["commitment"]))
        proof = generate_proof(identity, tree, 42, signal=7)
        (workspace / "proof.json").write_text(json.dumps(proof.to_dict()))

        verify = (
            "verify-membership", "--provider", PROVIDER,
            "--dapp-id", dapp_id, "--proof", str(workspace / "proof.json"),
        )
        assert _run(workspace, *verify) == 0
        assert _last_json(capsys)["signal"] == "7"

        assert _run(workspace, *verify) == 1
        assert "rejected" in capsys.readouterr().err

        assert _run(workspace, "status") == 0
        status = _last_json(capsys)
        assert status["enrollments"] == 1
        assert status["events"] == 5
