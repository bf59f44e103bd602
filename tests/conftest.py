"""Shared fixtures: deterministic keys, a controllable clock, claim signing."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest
from eth_account import Account

from claimgate.engine.claim_verifier import ClaimVerifier, sign_claim
from claimgate.engine.epoch_manager import EpochManager
from claimgate.models.claim import ClaimInfo, SignedClaim
from claimgate.models.epoch import Witness
from claimgate.models.ledger import LedgerState


def account(n: int):
    """Deterministic local account #n (n >= 1)."""
    return Account.from_key("0x" + f"{n:064x}")


OPERATOR = account(1000)
OWNER = account(2000)
WITNESS_ACCOUNTS = [account(i + 1) for i in range(5)]
CLAIM_TIMESTAMP = 1_700_000_000


class FakeClock:
    """Callable clock returning a fixed, manually advanced UTC time."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def witnesses_for(accounts) -> list[Witness]:
    return [
        Witness(address=a.address, host=f"wss://witness-{i}.example/ws")
        for i, a in enumerate(accounts)
    ]


def build_signed_claim(
    epoch_manager: EpochManager,
    provider: str,
    owner: str = OWNER.address,
    parameters: str = '{"url":"https://example.com"}',
    context: str = "",
    timestamp_s: int = CLAIM_TIMESTAMP,
    epoch_id: int = 0,
    accounts=WITNESS_ACCOUNTS,
) -> SignedClaim:
    """A claim signed by exactly the witnesses selected for it."""
    claim_info = ClaimInfo(provider=provider, parameters=parameters, context=context)
    identifier = ClaimVerifier.compute_identifier(claim_info)
    epoch = epoch_manager.fetch_epoch(epoch_id)
    expected = epoch_manager.fetch_witnesses_for_claim(epoch.id, identifier, timestamp_s)
    keys = {a.address: a.key for a in accounts}
    signatures = tuple(
        sign_claim(keys[w.address], identifier, owner, timestamp_s, epoch.id)
        for w in expected
    )
    return SignedClaim(
        claim_info=claim_info,
        owner=owner,
        timestamp_s=timestamp_s,
        epoch_id=epoch.id,
        signatures=signatures,
        identifier=identifier,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def state() -> LedgerState:
    return LedgerState()


@pytest.fixture
def epoch_manager(state: LedgerState, clock: FakeClock) -> EpochManager:
    manager = EpochManager(state, OPERATOR.address, clock=clock)
    manager.add_epoch(witnesses_for(WITNESS_ACCOUNTS), threshold=2, caller=OPERATOR.address)
    return manager


@pytest.fixture
def claim_factory(epoch_manager: EpochManager) -> Callable[..., SignedClaim]:
    def _make(provider: str, **kwargs) -> SignedClaim:
        return build_signed_claim(epoch_manager, provider, **kwargs)
    return _make
