"""claimgate service — unified facade and single-writer boundary.

This is the primary interface for programmatic access. It wires every
component over one LedgerState:
- Epoch management (operator-only panel rotation, witness lookup)
- Claim verification (threshold signatures against the expected panel)
- Anonymity groups and enrollment ("merkelization")
- Dapp registration
- Membership-proof gating
- Persistence (event log, state snapshot)

All operations run under one re-entrant lock and return a
ServiceResult. Component failures surface as ``error_kind`` plus a
message; nothing is retried. A committed transition always appends its
event record before the state snapshot is written. If either write
fails after the transition committed, the result carries a warning and
``status()`` reports degraded persistence.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from claimgate import __version__
from claimgate.config import ProtocolConfig
from claimgate.engine.claim_verifier import ClaimVerifier
from claimgate.engine.context import (
    get_context_address_from_proof,
    get_context_message_from_proof,
    get_provider_from_proof,
)
from claimgate.engine.epoch_manager import EpochManager
from claimgate.errors import ClaimGateError, MembershipBackendError
from claimgate.membership.backend import MembershipBackend
from claimgate.membership.dapp_registry import DappRegistry
from claimgate.membership.gate import MembershipGate
from claimgate.membership.group_registry import AnonymityGroupRegistry
from claimgate.membership.local_backend import LocalMembershipBackend
from claimgate.models.claim import ClaimInfo, SignedClaim
from claimgate.models.epoch import Witness
from claimgate.models.ledger import LedgerState
from claimgate.persistence.event_log import EventKind, EventLog, EventRecord
from claimgate.persistence.state_store import StateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[str] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _event_time_s(event: EventRecord) -> float:
    return datetime.strptime(
        event.timestamp_utc, "%Y-%m-%dT%H:%M:%SZ"
    ).replace(tzinfo=timezone.utc).timestamp()


def build_backend(
    config: ProtocolConfig,
    clock: Optional[Callable[[], datetime]] = None,
) -> MembershipBackend:
    """Instantiate the membership backend named in the config."""
    if config.membership_backend == "contract":
        from claimgate.membership.contract_backend import ContractMembershipBackend

        return ContractMembershipBackend.from_rpc(
            config.rpc_url,
            config.membership_contract_address,
            config.private_key,
            chain_id=config.chain_id,
        )
    return LocalMembershipBackend(
        root_history_duration_s=config.root_history_duration_s,
        clock=clock,
    )


class ClaimGateService:
    """Unified facade.

    Usage:
        config = load_config(Path("claimgate.json"))
        service = ClaimGateService(config, event_log=EventLog(path))

        service.add_epoch(witnesses, threshold=5, caller=config.operator_address)
        service.merkelize_user(signed_claim, commitment)
        result = service.create_dapp(external_nullifier, creator)
        service.verify_membership(provider, root, signal, nullifier_hash,
                                  external_nullifier, result.data["dapp_id"], proof)

    Persistence (optional):
        service = ClaimGateService(config, event_log=log, state_store=store)
        # State is loaded on construction and saved after each mutation.
    """

    def __init__(
        self,
        config: ProtocolConfig,
        backend: Optional[MembershipBackend] = None,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        errors = config.validate()
        if errors:
            raise ValueError("Invalid configuration: " + "; ".join(errors))

        self._config = config
        self._clock = clock or _utc_now
        self._event_log = event_log
        self._state_store = state_store
        self._state = state_store.load_state() if state_store is not None else LedgerState()
        self._backend = backend or build_backend(config, self._clock)

        self._epochs = EpochManager(
            self._state,
            config.operator_address,
            clock=self._clock,
            epoch_duration_s=config.epoch_duration_s,
        )
        self._verifier = ClaimVerifier(self._epochs)
        self._groups = AnonymityGroupRegistry(
            self._state,
            self._verifier,
            self._backend,
            admin=self._epochs.operator,
            default_depth=config.default_group_depth,
            clock=self._clock,
        )
        self._dapps = DappRegistry(self._state)
        self._gate = MembershipGate(self._state, self._dapps, self._backend)

        self._lock = threading.RLock()
        self._event_counter = event_log.count if event_log is not None else 0
        self._persistence_degraded = False

        if event_log is not None and isinstance(self._backend, LocalMembershipBackend):
            self._replay_membership_backend(self._backend, event_log)

    # ------------------------------------------------------------------
    # Epochs
    # ------------------------------------------------------------------

    def add_epoch(
        self,
        witnesses: list[Witness],
        threshold: int,
        caller: str,
    ) -> ServiceResult:
        """Add a new witness panel (operator only)."""
        with self._lock:
            try:
                epoch = self._epochs.add_epoch(witnesses, threshold, caller)
            except ClaimGateError as e:
                return self._failure(e, "add_epoch")

            data: dict[str, Any] = {"epoch": epoch.to_dict()}
            self._commit(
                [(EventKind.EPOCH_ADDED, caller, {
                    "epoch_id": epoch.id,
                    "threshold": epoch.threshold,
                    "witnesses": [w.to_dict() for w in epoch.witnesses],
                    "timestamp_start": epoch.timestamp_start,
                })],
                data,
            )
            return ServiceResult(success=True, data=data)

    def fetch_epoch(self, epoch_id: int = 0) -> ServiceResult:
        with self._lock:
            try:
                epoch = self._epochs.fetch_epoch(epoch_id)
            except ClaimGateError as e:
                return self._failure(e, "fetch_epoch")
            return ServiceResult(success=True, data={"epoch": epoch.to_dict()})

    def fetch_witnesses_for_claim(
        self,
        epoch_id: int,
        identifier: str,
        timestamp_s: int,
    ) -> ServiceResult:
        with self._lock:
            try:
                witnesses = self._epochs.fetch_witnesses_for_claim(
                    epoch_id, identifier, timestamp_s
                )
            except ClaimGateError as e:
                return self._failure(e, "fetch_witnesses_for_claim")
            except ValueError as e:
                return ServiceResult(success=False, errors=[str(e)])
            return ServiceResult(
                success=True,
                data={"witnesses": [w.to_dict() for w in witnesses]},
            )

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def compute_identifier(self, claim_info: ClaimInfo) -> ServiceResult:
        return ServiceResult(
            success=True,
            data={"identifier": self._verifier.compute_identifier(claim_info)},
        )

    def verify_claim(self, signed_claim: SignedClaim) -> ServiceResult:
        with self._lock:
            try:
                verification = self._verifier.verify_claim(signed_claim)
            except ClaimGateError as e:
                return self._failure(e, "verify_claim")
            return ServiceResult(
                success=True,
                data={
                    "identifier": verification.identifier,
                    "epoch_id": verification.epoch_id,
                    "signers": list(verification.signers),
                },
            )

    def get_provider(self, signed_claim: SignedClaim) -> ServiceResult:
        return ServiceResult(
            success=True, data={"provider": get_provider_from_proof(signed_claim)}
        )

    def get_context_address(self, signed_claim: SignedClaim) -> ServiceResult:
        try:
            address = get_context_address_from_proof(signed_claim)
        except ClaimGateError as e:
            return self._failure(e, "get_context_address")
        return ServiceResult(success=True, data={"context_address": address})

    def get_context_message(self, signed_claim: SignedClaim) -> ServiceResult:
        try:
            message = get_context_message_from_proof(signed_claim)
        except ClaimGateError as e:
            return self._failure(e, "get_context_message")
        return ServiceResult(success=True, data={"context_message": message})

    # ------------------------------------------------------------------
    # Anonymity groups
    # ------------------------------------------------------------------

    def group_id(self, provider: str) -> ServiceResult:
        return ServiceResult(
            success=True,
            data={"group_id": self._groups.group_id_from_provider(provider)},
        )

    def create_group(self, provider: str, depth: int, caller: str = "anonymous") -> ServiceResult:
        with self._lock:
            try:
                group = self._groups.create_group(provider, depth)
            except ClaimGateError as e:
                return self._failure(e, "create_group")

            data: dict[str, Any] = {"group": group.to_dict()}
            self._commit([self._group_created_event(group.to_dict(), caller)], data)
            return ServiceResult(success=True, data=data)

    def merkelize_user(self, signed_claim: SignedClaim, commitment: int) -> ServiceResult:
        """Enroll a verified claim holder's commitment in the provider's group."""
        with self._lock:
            try:
                enrollment = self._groups.merkelize_user(signed_claim, commitment)
            except MembershipBackendError as e:
                result = self._failure(e, "merkelize_user")
                if e.provisioned_group is not None:
                    group = e.provisioned_group.to_dict()
                    result.data["group"] = group
                    self._commit(
                        [self._group_created_event(group, signed_claim.owner.lower())],
                        result.data,
                    )
                return result
            except ClaimGateError as e:
                return self._failure(e, "merkelize_user")

            group = enrollment.group.to_dict()
            events = []
            if enrollment.group_created:
                events.append(self._group_created_event(group, enrollment.owner))
            events.append((EventKind.MEMBER_ENROLLED, enrollment.owner, {
                "group_id": enrollment.group.group_id,
                "provider": enrollment.provider,
                "owner": enrollment.owner,
                "commitment": str(enrollment.commitment),
                "claim_identifier": enrollment.verification.identifier,
            }))
            data: dict[str, Any] = {
                "group": group,
                "group_created": enrollment.group_created,
                "owner": enrollment.owner,
                "commitment": str(enrollment.commitment),
            }
            self._commit(events, data)
            return ServiceResult(success=True, data=data)

    # ------------------------------------------------------------------
    # Dapps and membership
    # ------------------------------------------------------------------

    def create_dapp(self, external_nullifier: int, creator: str) -> ServiceResult:
        with self._lock:
            try:
                dapp = self._dapps.create_dapp(external_nullifier, creator)
            except ClaimGateError as e:
                return self._failure(e, "create_dapp")
            except ValueError as e:
                return ServiceResult(success=False, errors=[str(e)])

            data: dict[str, Any] = {"dapp_id": dapp.dapp_id, "dapp": dapp.to_dict()}
            self._commit(
                [(EventKind.DAPP_CREATED, dapp.creator, {
                    "dapp_id": dapp.dapp_id,
                    "external_nullifier": str(dapp.external_nullifier),
                    "creator": dapp.creator,
                })],
                data,
            )
            return ServiceResult(success=True, data=data)

    def verify_membership(
        self,
        provider: str,
        merkle_root: int,
        signal: int,
        nullifier_hash: int,
        external_nullifier: int,
        dapp_id: str,
        proof: Any,
    ) -> ServiceResult:
        with self._lock:
            try:
                verified = self._gate.verify_membership(
                    provider,
                    merkle_root,
                    signal,
                    nullifier_hash,
                    external_nullifier,
                    dapp_id,
                    proof,
                )
            except ClaimGateError as e:
                return self._failure(e, "verify_membership")

            data: dict[str, Any] = {
                "group_id": verified.group_id,
                "merkle_root": str(verified.merkle_root),
                "nullifier_hash": str(verified.nullifier_hash),
                "external_nullifier": str(verified.external_nullifier),
                "signal": str(verified.signal),
                "dapp_id": verified.dapp_id,
            }
            self._commit([(EventKind.PROOF_VERIFIED, verified.dapp_id, dict(data))], data)
            return ServiceResult(success=True, data=data)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        """Return system-wide status summary."""
        with self._lock:
            return {
                "version": __version__,
                "operator": self._epochs.operator,
                "backend": self._config.membership_backend,
                "epochs": {
                    "total": len(self._state.epochs),
                    "current": self._state.current_epoch_id,
                },
                "groups": len(self._state.groups),
                "enrollments": len(self._state.merkelized),
                "dapps": len(self._state.dapps),
                "events": self._event_log.count if self._event_log is not None else 0,
                "persistence_degraded": self._persistence_degraded,
            }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _failure(error: ClaimGateError, operation: str) -> ServiceResult:
        logger.warning("%s rejected (%s): %s", operation, error.kind, error)
        return ServiceResult(success=False, errors=[str(error)], error_kind=error.kind)

    @staticmethod
    def _group_created_event(
        group: dict[str, Any], actor_id: str,
    ) -> tuple[EventKind, str, dict[str, Any]]:
        return (EventKind.GROUP_CREATED, actor_id, {
            "group_id": group["group_id"],
            "provider": group["provider"],
            "depth": group["depth"],
        })

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _commit(
        self,
        events: list[tuple[EventKind, str, dict[str, Any]]],
        data: dict[str, Any],
    ) -> None:
        """Record events and persist state for a transition that already applied.

        MUST NOT roll back in-memory state: the transition has taken
        effect in the backend too. Failures set the degraded flag and
        add a warning to ``data``.
        """
        warnings: list[str] = []
        if self._event_log is not None:
            try:
                for kind, actor_id, payload in events:
                    self._event_log.append(EventRecord.create(
                        event_id=self._next_event_id(),
                        event_kind=kind,
                        actor_id=actor_id,
                        payload=payload,
                        timestamp_utc=self._clock(),
                    ))
            except (ValueError, OSError) as e:
                self._persistence_degraded = True
                warnings.append(f"Event log degraded: {e}")

        if self._state_store is not None:
            try:
                self._state_store.save_state(self._state)
            except OSError as e:
                self._persistence_degraded = True
                warnings.append(f"Persistence degraded: {e}; state committed but StateStore is stale")

        if warnings:
            logger.error("; ".join(warnings))
            data["warning"] = "; ".join(warnings)

    def _replay_membership_backend(
        self, backend: LocalMembershipBackend, event_log: EventLog,
    ) -> None:
        """Rebuild an in-process backend's trees and spent nullifiers from the log.

        Roots keep the time of the enrollment that produced them, so a root
        that expired before a restart stays expired after it.
        """
        for event in event_log.events():
            payload = event.payload
            if event.event_kind == EventKind.GROUP_CREATED:
                group_id = int(payload["group_id"])
                if not backend.has_group(group_id):
                    backend.create_group(group_id, int(payload["depth"]), self._epochs.operator)
            elif event.event_kind == EventKind.MEMBER_ENROLLED:
                backend.add_member(
                    int(payload["group_id"]),
                    int(payload["commitment"]),
                    created_s=_event_time_s(event),
                )
            elif event.event_kind == EventKind.PROOF_VERIFIED:
                backend.mark_nullifier_spent(
                    int(payload["group_id"]), int(payload["nullifier_hash"])
                )
        logger.info("Membership backend rebuilt from %d events", event_log.count)
