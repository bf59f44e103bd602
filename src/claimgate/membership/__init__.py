"""Anonymity groups, dapps and membership-proof gating."""

from claimgate.membership.backend import MembershipBackend
from claimgate.membership.dapp_registry import DappRegistry
from claimgate.membership.gate import MembershipGate, ProofVerification
from claimgate.membership.group_registry import AnonymityGroupRegistry, Enrollment
from claimgate.membership.local_backend import LocalMembershipBackend

__all__ = [
    "AnonymityGroupRegistry",
    "DappRegistry",
    "Enrollment",
    "LocalMembershipBackend",
    "MembershipBackend",
    "MembershipGate",
    "ProofVerification",
]
