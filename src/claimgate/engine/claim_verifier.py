"""Claim verifier — threshold-signature check against the expected panel.

A claim is valid when exactly the witnesses selected for it (by epoch,
identifier and timestamp) have each signed its serialised form once.
Verification is read-only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from claimgate.crypto.hashing import (
    hash_claim_info,
    normalise_identifier,
    serialise_claim_data,
)
from claimgate.crypto.signatures import recover_signer, sign_message
from claimgate.engine.epoch_manager import EpochManager
from claimgate.errors import (
    IdentifierMismatchError,
    InvalidSignatureError,
    NoSignaturesError,
    SignatureCountMismatchError,
    WitnessSetMismatchError,
)
from claimgate.models.claim import ClaimInfo, SignedClaim

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimVerification:
    """Result of a successful verification."""
    identifier: str
    epoch_id: int
    signers: tuple[str, ...]


def sign_claim(
    private_key: str | bytes,
    identifier: str,
    owner: str,
    timestamp_s: int,
    epoch_id: int,
) -> bytes:
    """Produce one witness signature over a claim."""
    return sign_message(
        private_key, serialise_claim_data(identifier, owner, timestamp_s, epoch_id)
    )


class ClaimVerifier:
    """Validates signed claims against the epoch manager's panels."""

    def __init__(self, epoch_manager: EpochManager) -> None:
        self._epochs = epoch_manager

    @staticmethod
    def compute_identifier(claim_info: ClaimInfo) -> str:
        return hash_claim_info(claim_info)

    def verify_claim(self, signed_claim: SignedClaim) -> ClaimVerification:
        """Check the claim's signatures. Raises on the first failed check.

        Order: signatures present, identifier consistent, epoch exists,
        signature count, each signature recovers to a distinct signer,
        signer set equals the expected panel.
        """
        if not signed_claim.signatures:
            raise NoSignaturesError("No signatures")

        identifier = self.compute_identifier(signed_claim.claim_info)
        if signed_claim.identifier is not None:
            try:
                carried = normalise_identifier(signed_claim.identifier)
            except ValueError as e:
                raise IdentifierMismatchError(str(e)) from e
            if carried != identifier:
                raise IdentifierMismatchError(
                    f"Signed identifier {carried} does not match claim content {identifier}"
                )

        epoch = self._epochs.fetch_epoch(signed_claim.epoch_id)
        expected = self._epochs.fetch_witnesses_for_claim(
            epoch.id, identifier, signed_claim.timestamp_s
        )

        if len(signed_claim.signatures) != len(expected):
            raise SignatureCountMismatchError(
                "Number of signatures not equal to number of witnesses: "
                f"{len(signed_claim.signatures)} != {len(expected)}"
            )

        message = serialise_claim_data(
            identifier,
            signed_claim.owner,
            signed_claim.timestamp_s,
            signed_claim.epoch_id,
        )
        signers: list[str] = []
        for idx, signature in enumerate(signed_claim.signatures):
            signer = recover_signer(message, signature)
            if signer in signers:
                raise InvalidSignatureError(
                    f"signature[{idx}] repeats signer {signer}"
                )
            signers.append(signer)

        expected_addresses = {w.address for w in expected}
        if set(signers) != expected_addresses:
            unexpected = sorted(set(signers) - expected_addresses)
            raise WitnessSetMismatchError(
                f"Signature not appropriate: unexpected signers {unexpected}"
            )

        logger.debug("Claim %s verified against epoch %d", identifier, epoch.id)
        return ClaimVerification(
            identifier=identifier,
            epoch_id=epoch.id,
            signers=tuple(signers),
        )
