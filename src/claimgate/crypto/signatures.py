"""Witness signatures over serialised claim data.

Witnesses sign with Ethereum personal messages (EIP-191, version 0x45),
so any standard wallet key can act as a witness key.
"""

from __future__ import annotations

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature, ValidationError as KeysValidationError
from eth_utils import ValidationError as UtilsValidationError

from claimgate.errors import InvalidSignatureError


_RECOVERY_FAILURES = (
    ValueError,
    TypeError,
    BadSignature,
    KeysValidationError,
    UtilsValidationError,
)


def sign_message(private_key: str | bytes, message: str) -> bytes:
    """Sign ``message`` as a personal message; returns the 65-byte signature."""
    signed = Account.sign_message(encode_defunct(text=message), private_key=private_key)
    return bytes(signed.signature)


def recover_signer(message: str, signature: bytes) -> str:
    """Return the checksummed address that produced ``signature``.

    Raises InvalidSignatureError if the bytes are not a recoverable
    secp256k1 signature.
    """
    try:
        return Account.recover_message(encode_defunct(text=message), signature=signature)
    except _RECOVERY_FAILURES as e:
        raise InvalidSignatureError(f"Signature does not recover: {e}") from e
