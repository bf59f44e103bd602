"""claimgate CLI — command-line interface for the attestation registry.

Usage:
    python -m claimgate.cli status
    python -m claimgate.cli add-epoch --witnesses witnesses.json --threshold 5
    python -m claimgate.cli fetch-epoch --id 0
    python -m claimgate.cli fetch-witnesses --epoch 1 --identifier 0xabc... --timestamp 1700000000
    python -m claimgate.cli hash-claim --provider http --parameters '{}' --context ''
    python -m claimgate.cli group-id --provider google-account
    python -m claimgate.cli create-group --provider google-account --depth 20
    python -m claimgate.cli merkelize --claim claim.json --commitment 1234
    python -m claimgate.cli create-dapp --external-nullifier 42 --creator 0x...
    python -m claimgate.cli verify-membership --provider google-account --dapp-id 0x... --proof proof.json

Commands that mutate state append to ``<data_dir>/events.jsonl`` and
rewrite ``<data_dir>/state.json``.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from claimgate.config import ProtocolConfig, load_config
from claimgate.membership.local_backend import FullProof
from claimgate.models.claim import ClaimInfo, SignedClaim
from claimgate.models.epoch import Witness
from claimgate.persistence.event_log import EventLog
from claimgate.persistence.state_store import StateStore
from claimgate.service import ClaimGateService, ServiceResult


DEFAULT_CONFIG = Path("claimgate.json")


def _load_config(args: argparse.Namespace) -> ProtocolConfig:
    config = load_config(args.config, env_file=args.env_file)
    if args.data_dir is not None:
        config.data_dir = str(args.data_dir)
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return config


def _make_service(args: argparse.Namespace) -> ClaimGateService:
    """Create a ClaimGateService with durable persistence."""
    config = _load_config(args)
    data_dir = Path(config.data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    return ClaimGateService(
        config,
        event_log=EventLog(storage_path=data_dir / "events.jsonl"),
        state_store=StateStore(storage_path=data_dir / "state.json"),
    )


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_add_epoch(args: argparse.Namespace) -> int:
    service = _make_service(args)
    witnesses = [Witness.from_dict(w) for w in _read_json(args.witnesses)]
    caller = args.caller or service.status()["operator"]
    return _report(service.add_epoch(witnesses, args.threshold, caller))


def cmd_fetch_epoch(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.fetch_epoch(args.id))


def cmd_fetch_witnesses(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(
        service.fetch_witnesses_for_claim(args.epoch, args.identifier, args.timestamp)
    )


def cmd_hash_claim(args: argparse.Namespace) -> int:
    """Print the identifier of a claim. Needs no stored state."""
    from claimgate.crypto.hashing import hash_claim_info

    claim_info = ClaimInfo(
        provider=args.provider,
        parameters=args.parameters,
        context=args.context,
    )
    print(hash_claim_info(claim_info))
    return 0


def cmd_group_id(args: argparse.Namespace) -> int:
    from claimgate.crypto.hashing import group_id_from_provider

    print(group_id_from_provider(args.provider))
    return 0


def cmd_create_group(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.create_group(args.provider, args.depth))


def cmd_merkelize(args: argparse.Namespace) -> int:
    service = _make_service(args)
    signed_claim = SignedClaim.from_dict(_read_json(args.claim))
    return _report(service.merkelize_user(signed_claim, int(args.commitment, 0)))


def cmd_create_dapp(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.create_dapp(int(args.external_nullifier, 0), args.creator))


def cmd_verify_membership(args: argparse.Namespace) -> int:
    service = _make_service(args)
    data = _read_json(args.proof)
    if service.status()["backend"] == "contract":
        proof: Any = [int(word) for word in data["proof"]]
        public = data
    else:
        full = FullProof.from_dict(data)
        proof = full.proof
        public = full.to_dict()
    return _report(service.verify_membership(
        provider=args.provider,
        merkle_root=int(public["merkle_root"]),
        signal=int(public["signal"]),
        nullifier_hash=int(public["nullifier_hash"]),
        external_nullifier=int(public["external_nullifier"]),
        dapp_id=args.dapp_id,
        proof=proof,
    ))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claimgate",
        description="claimgate — witness-attested claims and anonymous membership",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to JSON config file (default: claimgate.json)",
    )
    parser.add_argument("--env-file", type=Path, help="dotenv file to load first")
    parser.add_argument("--data-dir", type=Path, help="Override config data_dir")
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show system status")

    # add-epoch
    p_epoch = sub.add_parser("add-epoch", help="Add a witness panel (operator only)")
    p_epoch.add_argument(
        "--witnesses", type=Path, required=True,
        help='JSON file: [{"address": "0x...", "host": "..."}, ...]',
    )
    p_epoch.add_argument("--threshold", type=int, required=True, help="Signatures required")
    p_epoch.add_argument("--caller", help="Caller address (default: configured operator)")

    # fetch-epoch
    p_fetch = sub.add_parser("fetch-epoch", help="Show an epoch (0 = current)")
    p_fetch.add_argument("--id", type=int, default=0, help="Epoch id (default: 0)")

    # fetch-witnesses
    p_wit = sub.add_parser("fetch-witnesses", help="Witnesses expected to sign a claim")
    p_wit.add_argument("--epoch", type=int, default=0, help="Epoch id (default: current)")
    p_wit.add_argument("--identifier", required=True, help="Claim identifier (0x hex)")
    p_wit.add_argument("--timestamp", type=int, required=True, help="Claim timestamp (s)")

    # hash-claim
    p_hash = sub.add_parser("hash-claim", help="Compute a claim identifier")
    p_hash.add_argument("--provider", required=True)
    p_hash.add_argument("--parameters", default="")
    p_hash.add_argument("--context", default="")

    # group-id
    p_gid = sub.add_parser("group-id", help="Group id for a provider")
    p_gid.add_argument("--provider", required=True)

    # create-group
    p_group = sub.add_parser("create-group", help="Create a provider's anonymity group")
    p_group.add_argument("--provider", required=True)
    p_group.add_argument("--depth", type=int, default=20, help="Tree depth, 16-32 (default: 20)")

    # merkelize
    p_merk = sub.add_parser("merkelize", help="Enroll a commitment with a signed claim")
    p_merk.add_argument("--claim", type=Path, required=True, help="Signed claim JSON file")
    p_merk.add_argument("--commitment", required=True, help="Identity commitment (int or 0x hex)")

    # create-dapp
    p_dapp = sub.add_parser("create-dapp", help="Register a dapp's external nullifier")
    p_dapp.add_argument("--external-nullifier", required=True, help="int or 0x hex")
    p_dapp.add_argument("--creator", required=True, help="Creator address")

    # verify-membership
    p_ver = sub.add_parser("verify-membership", help="Verify a dapp-scoped membership proof")
    p_ver.add_argument("--provider", required=True)
    p_ver.add_argument("--dapp-id", required=True)
    p_ver.add_argument("--proof", type=Path, required=True, help="Proof JSON file")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "add-epoch": cmd_add_epoch,
        "fetch-epoch": cmd_fetch_epoch,
        "fetch-witnesses": cmd_fetch_witnesses,
        "hash-claim": cmd_hash_claim,
        "group-id": cmd_group_id,
        "create-group": cmd_create_group,
        "merkelize": cmd_merkelize,
        "create-dapp": cmd_create_dapp,
        "verify-membership": cmd_verify_membership,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except (ValueError, KeyError, OSError, RuntimeError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
