"""Cryptographic primitives — keccak hashing, witness signatures, selection, Merkle trees."""

from claimgate.crypto.hashing import group_id_from_provider, hash_claim_info
from claimgate.crypto.merkle import IncrementalMerkleTree, MerkleProof
from claimgate.crypto.witness_selection import select_witnesses_for_claim

__all__ = [
    "IncrementalMerkleTree",
    "MerkleProof",
    "group_id_from_provider",
    "hash_claim_info",
    "select_witnesses_for_claim",
]
