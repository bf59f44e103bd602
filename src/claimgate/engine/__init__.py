"""Claim engine — epochs, witness selection and signature verification."""

from claimgate.engine.claim_verifier import ClaimVerification, ClaimVerifier, sign_claim
from claimgate.engine.epoch_manager import EpochManager

__all__ = ["ClaimVerification", "ClaimVerifier", "EpochManager", "sign_claim"]
