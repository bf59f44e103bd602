"""Accessors over a claim's provider and context string.

The context starts with a 42-character hex address (``0x`` + 40 hex
digits); everything after it is a free-form message.
"""

from __future__ import annotations

from eth_utils import is_hex_address

from claimgate.errors import ContextTooShortError, InvalidContextAddressError
from claimgate.models.claim import SignedClaim

CONTEXT_ADDRESS_LENGTH = 42


def get_provider_from_proof(signed_claim: SignedClaim) -> str:
    return signed_claim.claim_info.provider


def _require_context(signed_claim: SignedClaim) -> str:
    context = signed_claim.claim_info.context or ""
    if len(context) < CONTEXT_ADDRESS_LENGTH:
        raise ContextTooShortError(
            f"Context has {len(context)} characters, needs at least {CONTEXT_ADDRESS_LENGTH}"
        )
    return context


def get_context_address_from_proof(signed_claim: SignedClaim) -> str:
    """The address prefix of the context, as written."""
    prefix = _require_context(signed_claim)[:CONTEXT_ADDRESS_LENGTH]
    if not is_hex_address(prefix):
        raise InvalidContextAddressError(f"Context prefix {prefix!r} is not a hex address")
    return prefix


def get_context_message_from_proof(signed_claim: SignedClaim) -> str:
    return _require_context(signed_claim)[CONTEXT_ADDRESS_LENGTH:]
