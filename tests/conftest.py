import base64
import os
import tempfile

os.environ["COORDINATOR_DATA_DIR"] = tempfile.mkdtemp(prefix="coordinator-tests-")
os.environ["COORDINATOR_HMAC_SECRET"] = "test-hmac-secret"
os.environ.pop("COORDINATOR_STATE_PATH", None)
os.environ.pop("COORDINATOR_SIGNER_PRIVATE_KEY", None)
os.environ.pop("MINING_CONTRACT_ADDRESS", None)
os.environ.pop("CHAIN_ID", None)
os.environ.pop("NEXT_PUBLIC_CHAIN_ID", None)
os.environ.pop("NEXT_PUBLIC_MINING_ADDRESS", None)

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import to_hex
from fastapi.testclient import TestClient

from coordinator import receipts, state
from coordinator.main import app
from coordinator.tokens import TokenCodec

SIGNER_KEY = "0x" + "11" * 32
MINING_CONTRACT = "0x" + "ab" * 20


def public_key_b64(private_key: Ed25519PrivateKey) -> str:
    der = private_key.public_key().public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)
    return base64.b64encode(der).decode("ascii")


def agent_signature(private_key: Ed25519PrivateKey, server_nonce: str) -> str:
    return base64.b64encode(private_key.sign(server_nonce.encode("utf-8"))).decode("ascii")


def wallet_signature(wallet, message: str) -> str:
    signed = Account.sign_message(encode_defunct(text=message), private_key=wallet.key)
    return to_hex(signed.signature)


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def codec():
    return TokenCodec("unit-test-secret")


@pytest.fixture
def agent_key():
    return Ed25519PrivateKey.generate()


@pytest.fixture
def wallet():
    return Account.create()


@pytest.fixture
def miner(wallet):
    return wallet.address.lower()


@pytest.fixture
def memory_store():
    store = state.MemoryStore()
    state.configure_store(store)
    yield store
    state.configure_store(None)


@pytest.fixture
def configured_signer(monkeypatch):
    monkeypatch.setattr(receipts, "COORDINATOR_SIGNER_PRIVATE_KEY", SIGNER_KEY)
    monkeypatch.setattr(receipts, "MINING_CONTRACT_ADDRESS", MINING_CONTRACT)
    return Account.from_key(SIGNER_KEY).address
