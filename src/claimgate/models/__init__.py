"""Core data models for claimgate."""

from claimgate.models.claim import ClaimInfo, SignedClaim
from claimgate.models.epoch import Epoch, Witness
from claimgate.models.ledger import LedgerState
from claimgate.models.membership import AnonymityGroup, Dapp

__all__ = [
    "AnonymityGroup",
    "ClaimInfo",
    "Dapp",
    "Epoch",
    "LedgerState",
    "SignedClaim",
    "Witness",
]
