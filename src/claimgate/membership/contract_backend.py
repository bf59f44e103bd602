"""Membership backend that forwards to an on-chain group-membership contract.

Every mutating call is a signed Ethereum transaction; the contract holds
the member trees, verifies zero-knowledge proofs and records spent
nullifier hashes. ``verify_proof`` is simulated with ``eth_call`` first
so a rejected proof costs no gas and returns False.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from eth_account import Account
from eth_utils import to_checksum_address
from web3.exceptions import ContractLogicError, Web3Exception

from claimgate.errors import MembershipBackendError
from claimgate.membership.backend import MembershipBackend

logger = logging.getLogger(__name__)

PROOF_WORDS = 8

MEMBERSHIP_CONTRACT_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "createGroup",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "groupId", "type": "uint256"},
            {"name": "merkleTreeDepth", "type": "uint256"},
            {"name": "admin", "type": "address"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "addMember",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "groupId", "type": "uint256"},
            {"name": "identityCommitment", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "verifyProof",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "groupId", "type": "uint256"},
            {"name": "merkleTreeRoot", "type": "uint256"},
            {"name": "signal", "type": "uint256"},
            {"name": "nullifierHash", "type": "uint256"},
            {"name": "externalNullifier", "type": "uint256"},
            {"name": "proof", "type": "uint256[8]"},
        ],
        "outputs": [],
    },
]


class ContractMembershipBackend(MembershipBackend):
    """Drives a deployed membership contract through web3.

    Usage:
        backend = ContractMembershipBackend.from_rpc(
            rpc_url, contract_address, private_key, chain_id=11155111,
        )
    """

    def __init__(
        self,
        w3: Any,
        contract_address: str,
        private_key: str,
        chain_id: int = 11155111,  # Sepolia
        gas: int = 1_000_000,
        gas_price_gwei: str = "2",
        receipt_timeout_s: int = 300,
    ) -> None:
        self._w3 = w3
        self._account = Account.from_key(private_key)
        self._contract = w3.eth.contract(
            address=to_checksum_address(contract_address),
            abi=MEMBERSHIP_CONTRACT_ABI,
        )
        self._chain_id = chain_id
        self._gas = gas
        self._gas_price_gwei = gas_price_gwei
        self._receipt_timeout_s = receipt_timeout_s

    @classmethod
    def from_rpc(
        cls,
        rpc_url: str,
        contract_address: str,
        private_key: str,
        chain_id: int = 11155111,
    ) -> ContractMembershipBackend:
        from web3 import Web3, HTTPProvider

        return cls(
            Web3(HTTPProvider(rpc_url)),
            contract_address,
            private_key,
            chain_id=chain_id,
        )

    @property
    def sender(self) -> str:
        return self._account.address

    def create_group(self, group_id: int, depth: int, admin: str) -> None:
        receipt = self._transact(
            self._contract.functions.createGroup(
                group_id, depth, to_checksum_address(admin)
            )
        )
        self._require_success(receipt, f"createGroup({group_id})")

    def add_member(self, group_id: int, commitment: int) -> None:
        receipt = self._transact(
            self._contract.functions.addMember(group_id, commitment)
        )
        self._require_success(receipt, f"addMember({group_id})")

    def verify_proof(
        self,
        group_id: int,
        merkle_root: int,
        signal: int,
        nullifier_hash: int,
        external_nullifier: int,
        proof: Any,
    ) -> bool:
        words = self._proof_words(proof)
        if words is None:
            logger.debug("Proof rejected: expected %d uint256 words", PROOF_WORDS)
            return False

        fn = self._contract.functions.verifyProof(
            group_id, merkle_root, signal, nullifier_hash, external_nullifier, words
        )
        try:
            fn.call({"from": self._account.address})
        except ContractLogicError as e:
            logger.debug("Proof rejected by contract: %s", e)
            return False
        except (Web3Exception, OSError) as e:
            raise MembershipBackendError(f"verifyProof({group_id}) simulation failed: {e}") from e

        receipt = self._transact(fn)
        return receipt["status"] == 1

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _transact(self, fn: Any) -> Any:
        try:
            nonce = self._w3.eth.get_transaction_count(self._account.address)
            tx = fn.build_transaction(
                {
                    "from": self._account.address,
                    "gas": self._gas,
                    "gasPrice": self._w3.to_wei(self._gas_price_gwei, "gwei"),
                    "nonce": nonce,
                    "chainId": self._chain_id,
                }
            )
            signed = self._account.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
            logger.info("Sent membership tx %s", tx_hash.hex())
            return self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout_s
            )
        except (Web3Exception, OSError) as e:
            raise MembershipBackendError(f"Membership transaction failed: {e}") from e

    @staticmethod
    def _require_success(receipt: Any, action: str) -> None:
        if receipt["status"] != 1:
            raise MembershipBackendError(f"Membership contract reverted {action}")

    @staticmethod
    def _proof_words(proof: Any) -> list[int] | None:
        if not isinstance(proof, Sequence) or isinstance(proof, (str, bytes)):
            return None
        if len(proof) != PROOF_WORDS:
            return None
        try:
            return [int(w) for w in proof]
        except (TypeError, ValueError):
            return None
