"""EIP-712 receipts for successful solves."""
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_hex

from .security import is_address, is_private_key, sha256_hex
from .settings import (
    CHAIN_ID,
    COORDINATOR_SIGNER_PRIVATE_KEY,
    MINING_CONTRACT_ADDRESS,
    PRODUCT_NAME,
    PRODUCT_VERSION,
)

logger = logging.getLogger(__name__)

WARNING_SIGNER = "missing_or_invalid_signer"
WARNING_CONTRACT = "missing_or_invalid_mining_contract"

RECEIPT_TYPES: Dict[str, List[Dict[str, str]]] = {
    "Receipt": [
        {"name": "chainId", "type": "uint256"},
        {"name": "epochId", "type": "uint256"},
        {"name": "miner", "type": "address"},
        {"name": "challengeId", "type": "bytes32"},
        {"name": "nonceHash", "type": "bytes32"},
        {"name": "creditsAmount", "type": "uint256"},
        {"name": "artifactHash", "type": "bytes32"},
        {"name": "issuedAt", "type": "uint256"},
    ]
}


@dataclass(frozen=True)
class Receipt:
    chain_id: int
    epoch_id: int
    miner_address: str
    challenge_id: str
    nonce_hash: str
    credits_amount: int
    artifact_hash: str
    issued_at: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "epochId": self.epoch_id,
            "minerAddress": self.miner_address,
            "challengeId": self.challenge_id,
            "nonceHash": self.nonce_hash,
            "creditsAmount": self.credits_amount,
            "artifactHash": self.artifact_hash,
            "issuedAt": self.issued_at,
        }

    def typed_message(self) -> Dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "epochId": self.epoch_id,
            "miner": self.miner_address,
            "challengeId": bytes.fromhex(self.challenge_id[2:]),
            "nonceHash": bytes.fromhex(self.nonce_hash[2:]),
            "creditsAmount": self.credits_amount,
            "artifactHash": bytes.fromhex(self.artifact_hash[2:]),
            "issuedAt": self.issued_at,
        }


@dataclass(frozen=True)
class SignedReceipt:
    receipt: Receipt
    signature: Optional[str] = None
    signer: Optional[str] = None
    warning: Optional[str] = None


def build_receipt(
    *,
    epoch_id: int,
    miner_address: str,
    challenge_seed: str,
    nonce: str,
    expected_artifact: str,
    credits_amount: int,
    chain_id: int = CHAIN_ID,
    now: Optional[float] = None,
) -> Receipt:
    return Receipt(
        chain_id=chain_id,
        epoch_id=epoch_id,
        miner_address=miner_address,
        challenge_id=f"0x{challenge_seed}",
        nonce_hash=f"0x{sha256_hex(nonce)}",
        credits_amount=credits_amount,
        artifact_hash=f"0x{sha256_hex(expected_artifact)}",
        issued_at=int(time.time() if now is None else now),
    )


def receipt_domain(chain_id: int, verifying_contract: str) -> Dict[str, Any]:
    return {
        "name": PRODUCT_NAME,
        "version": PRODUCT_VERSION,
        "chainId": chain_id,
        "verifyingContract": verifying_contract.lower(),
    }


def recover_receipt_signer(receipt: Receipt, signature: str, verifying_contract: str) -> str:
    signable = encode_typed_data(
        domain_data=receipt_domain(receipt.chain_id, verifying_contract),
        message_types=RECEIPT_TYPES,
        message_data=receipt.typed_message(),
    )
    return Account.recover_message(signable, signature=signature)


class ReceiptSigner:
    def __init__(self, private_key: str, verifying_contract: str, chain_id: int = CHAIN_ID) -> None:
        self.private_key = private_key or ""
        self.verifying_contract = verifying_contract or ""
        self.chain_id = chain_id

    @property
    def address(self) -> Optional[str]:
        if not is_private_key(self.private_key):
            return None
        return Account.from_key(self.private_key).address

    def sign(self, receipt: Receipt) -> SignedReceipt:
        if not is_private_key(self.private_key):
            logger.warning("receipt left unsigned: %s", WARNING_SIGNER)
            return SignedReceipt(receipt, warning=WARNING_SIGNER)
        if not is_address(self.verifying_contract):
            logger.warning("receipt left unsigned: %s", WARNING_CONTRACT)
            return SignedReceipt(receipt, warning=WARNING_CONTRACT)

        signed = Account.sign_typed_data(
            self.private_key,
            domain_data=receipt_domain(self.chain_id, self.verifying_contract),
            message_types=RECEIPT_TYPES,
            message_data=receipt.typed_message(),
        )
        return SignedReceipt(receipt, signature=to_hex(signed.signature), signer=self.address)


def receipt_signer() -> ReceiptSigner:
    return ReceiptSigner(COORDINATOR_SIGNER_PRIVATE_KEY, MINING_CONTRACT_ADDRESS)
