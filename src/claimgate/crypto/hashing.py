"""Hash constructions shared by every component.

All hashing is keccak-256. The byte layouts here are a wire contract:
witnesses, clients and independent verifiers must reproduce them
exactly, so none of them may change without a protocol version bump.
"""

from __future__ import annotations

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from claimgate.models.claim import ClaimInfo


# Order of the BN254 scalar field; membership values must be below it.
SNARK_SCALAR_FIELD = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)


def keccak_hex(data: bytes) -> str:
    """Keccak-256 digest as 0x-prefixed lowercase hex."""
    return "0x" + keccak(data).hex()


def normalise_identifier(identifier: str | bytes) -> str:
    """Render a 32-byte claim identifier as 0x-prefixed lowercase hex.

    Raises ValueError if the input is not exactly 32 bytes.
    """
    if isinstance(identifier, (bytes, bytearray)):
        raw = bytes(identifier)
    else:
        raw = bytes.fromhex(identifier.lower().removeprefix("0x"))
    if len(raw) != 32:
        raise ValueError(f"Claim identifier must be 32 bytes, got {len(raw)}")
    return "0x" + raw.hex()


def hash_claim_info(claim_info: ClaimInfo) -> str:
    """Identifier of a claim: keccak(provider \\n parameters \\n context)."""
    serialised = "\n".join(
        [claim_info.provider, claim_info.parameters, claim_info.context or ""]
    )
    return keccak_hex(serialised.encode("utf-8"))


def serialise_claim_data(
    identifier: str,
    owner: str,
    timestamp_s: int,
    epoch_id: int,
) -> str:
    """The exact text each witness signs for a claim."""
    return "\n".join(
        [
            normalise_identifier(identifier),
            owner.lower(),
            str(timestamp_s),
            str(epoch_id),
        ]
    )


def group_id_from_provider(provider: str) -> int:
    """First four bytes (big-endian) of keccak(provider)."""
    digest = keccak(provider.encode("utf-8"))
    return int.from_bytes(digest[:4], "big")


def dapp_id_for(creator: str, external_nullifier: int) -> str:
    """keccak(abi.encode(address creator, uint256 external_nullifier))."""
    packed = encode(
        ["address", "uint256"],
        [to_checksum_address(creator), external_nullifier],
    )
    return keccak_hex(packed)


def hash_to_field(value: int | bytes) -> int:
    """Map a value into the scalar field: keccak(value) >> 8."""
    if isinstance(value, int):
        value = value.to_bytes(32, "big")
    return int.from_bytes(keccak(value), "big") >> 8


def hash_field_pair(left: int, right: int) -> int:
    """Hash two field elements into one (Merkle nodes, commitments)."""
    packed = left.to_bytes(32, "big") + right.to_bytes(32, "big")
    return int.from_bytes(keccak(packed), "big") >> 8
