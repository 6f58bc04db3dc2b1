"""Agent-key and wallet possession proofs presented to obtain a lease."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from eth_account import Account
from eth_account.messages import encode_defunct

from .security import normalize_miner, verify_ed25519_signature
from .settings import CHAIN_ID, PRODUCT_NAME


class ProofError(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def build_prove_message(miner_address: str, server_nonce: str, chain_id: int = CHAIN_ID) -> str:
    return (
        f"{PRODUCT_NAME} Agent Lease Proof\n\n"
        f"miner: {miner_address}\n"
        f"chainId: {chain_id}\n"
        f"nonce: {server_nonce}"
    )


@dataclass(frozen=True)
class AgentKeyMaterials:
    public_key: Ed25519PublicKey
    server_nonce: str
    signature_b64: str


@dataclass(frozen=True)
class WalletMaterials:
    miner_address: str
    message: str
    signature: str


class Proof(ABC):
    failure_reason = "proof_failed"

    @abstractmethod
    def verify(self, materials: Any) -> bool:
        raise NotImplementedError


class AgentKeyProof(Proof):
    failure_reason = "agentSig_verify_failed"

    def verify(self, materials: AgentKeyMaterials) -> bool:
        return verify_ed25519_signature(
            materials.public_key,
            materials.server_nonce.encode("utf-8"),
            materials.signature_b64,
        )


class WalletProof(Proof):
    failure_reason = "walletSig_not_miner"
    recover_failure_reason = "walletSig_recover_failed"

    def recover(self, message: str, signature: str) -> str:
        try:
            return Account.recover_message(encode_defunct(text=message), signature=signature)
        except Exception as exc:
            raise ProofError(self.recover_failure_reason) from exc

    def verify(self, materials: WalletMaterials) -> bool:
        recovered = self.recover(materials.message, materials.signature)
        return normalize_miner(recovered) == materials.miner_address
