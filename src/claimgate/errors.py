"""Typed failures for every claimgate operation.

Each error carries a stable ``kind`` string. The service layer reports
that kind back to callers so they can correct input and resubmit; no
operation retries on its own.
"""

from __future__ import annotations


class ClaimGateError(Exception):
    """Base class. Unless noted, an operation that raises has written nothing."""

    kind = "ClaimGateError"


class NotOwnerError(ClaimGateError):
    """Raised when a privileged operation is called by a non-operator."""

    kind = "NotOwner"


class InvalidEpochParametersError(ClaimGateError):
    kind = "InvalidEpochParameters"


class EpochNotFoundError(ClaimGateError):
    kind = "EpochNotFound"


class GroupAlreadyExistsError(ClaimGateError):
    kind = "GroupAlreadyExists"


class GroupNotFoundError(ClaimGateError):
    kind = "GroupNotFound"


class UnsupportedTreeDepthError(ClaimGateError):
    kind = "UnsupportedTreeDepth"


class GroupFullError(ClaimGateError):
    kind = "GroupFull"


class InvalidCommitmentError(ClaimGateError):
    kind = "InvalidCommitment"


class NoSignaturesError(ClaimGateError):
    kind = "NoSignatures"


class IdentifierMismatchError(ClaimGateError):
    """Raised when a claim's signed identifier does not match its content."""

    kind = "IdentifierMismatch"


class SignatureCountMismatchError(ClaimGateError):
    kind = "SignatureCountMismatch"


class InvalidSignatureError(ClaimGateError):
    """Raised when a signature does not recover, or recovers to a duplicate signer."""

    kind = "InvalidSignature"


class WitnessSetMismatchError(ClaimGateError):
    kind = "WitnessSetMismatch"


class UserAlreadyMerkelizedError(ClaimGateError):
    kind = "UserAlreadyMerkelized"


class DappAlreadyExistsError(ClaimGateError):
    kind = "DappAlreadyExists"


class DappNotCreatedError(ClaimGateError):
    kind = "DappNotCreated"


class InvalidProofError(ClaimGateError):
    kind = "InvalidProof"


class ContextTooShortError(ClaimGateError):
    kind = "ContextTooShort"


class InvalidContextAddressError(ClaimGateError):
    kind = "InvalidContextAddress"


class MembershipBackendError(ClaimGateError, RuntimeError):
    """Raised when the membership backend fails or reverts a call.

    ``provisioned_group`` is set when the backend created the group
    before the failing call; that group stands.
    """

    kind = "MembershipBackendFailure"
    provisioned_group = None
