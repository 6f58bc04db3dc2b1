import hashlib

from eth_account import Account
from eth_account.messages import encode_typed_data

from conftest import MINING_CONTRACT, SIGNER_KEY
from coordinator.challenge import make_challenge
from coordinator.receipts import (
    WARNING_CONTRACT,
    WARNING_SIGNER,
    ReceiptSigner,
    build_receipt,
    receipt_signer,
    recover_receipt_signer,
)

MINER = "0x" + "cd" * 20


def _receipt(now=1_790_000_000):
    pack = make_challenge(9, MINER, "n1")
    return build_receipt(
        epoch_id=9,
        miner_address=MINER,
        challenge_seed=pack.seed,
        nonce="n1",
        expected_artifact=pack.expected_artifact,
        credits_amount=1,
        chain_id=56,
        now=now,
    ), pack


def test_build_receipt_fields():
    receipt, pack = _receipt()

    assert list(receipt.as_dict()) == [
        "chainId",
        "epochId",
        "minerAddress",
        "challengeId",
        "nonceHash",
        "creditsAmount",
        "artifactHash",
        "issuedAt",
    ]
    assert receipt.challenge_id == f"0x{pack.seed}"
    assert receipt.nonce_hash == "0x" + hashlib.sha256(b"n1").hexdigest()
    assert receipt.artifact_hash == "0x" + hashlib.sha256(pack.expected_artifact.encode()).hexdigest()
    assert receipt.issued_at == 1_790_000_000


def test_missing_signer_is_soft_failure():
    receipt, _pack = _receipt()
    signed = ReceiptSigner("", MINING_CONTRACT, chain_id=56).sign(receipt)

    assert signed.signature is None
    assert signed.signer is None
    assert signed.warning == WARNING_SIGNER


def test_malformed_signer_key_is_soft_failure():
    receipt, _pack = _receipt()
    assert ReceiptSigner("0x1234", MINING_CONTRACT, chain_id=56).sign(receipt).warning == WARNING_SIGNER


def test_missing_contract_is_soft_failure():
    receipt, _pack = _receipt()
    signed = ReceiptSigner(SIGNER_KEY, "", chain_id=56).sign(receipt)

    assert signed.signature is None
    assert signed.warning == WARNING_CONTRACT


def test_signature_recovers_to_signer():
    receipt, _pack = _receipt()
    signed = ReceiptSigner(SIGNER_KEY, MINING_CONTRACT, chain_id=56).sign(receipt)

    assert signed.warning is None
    assert signed.signer == Account.from_key(SIGNER_KEY).address
    assert recover_receipt_signer(receipt, signed.signature, MINING_CONTRACT) == signed.signer


def test_signature_is_bound_to_contract_and_fields():
    receipt, _pack = _receipt()
    signed = ReceiptSigner(SIGNER_KEY, MINING_CONTRACT, chain_id=56).sign(receipt)
    later, _ = _receipt(now=1_790_000_001)

    assert recover_receipt_signer(receipt, signed.signature, "0x" + "ef" * 20) != signed.signer
    assert recover_receipt_signer(later, signed.signature, MINING_CONTRACT) != signed.signer


def test_signer_from_settings(configured_signer):
    assert receipt_signer().address == configured_signer


def test_signature_matches_contract_receipt_struct():
    receipt, _pack = _receipt()
    signed = ReceiptSigner(SIGNER_KEY, MINING_CONTRACT, chain_id=56).sign(receipt)
    typed = {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Receipt": [
                {"name": "chainId", "type": "uint256"},
                {"name": "epochId", "type": "uint256"},
                {"name": "miner", "type": "address"},
                {"name": "challengeId", "type": "bytes32"},
                {"name": "nonceHash", "type": "bytes32"},
                {"name": "creditsAmount", "type": "uint256"},
                {"name": "artifactHash", "type": "bytes32"},
                {"name": "issuedAt", "type": "uint256"},
            ],
        },
        "primaryType": "Receipt",
        "domain": {"name": "ClawMiner", "version": "1", "chainId": 56, "verifyingContract": MINING_CONTRACT},
        "message": {
            "chainId": 56,
            "epochId": 9,
            "miner": MINER,
            "challengeId": bytes.fromhex(receipt.challenge_id[2:]),
            "nonceHash": bytes.fromhex(receipt.nonce_hash[2:]),
            "creditsAmount": 1,
            "artifactHash": bytes.fromhex(receipt.artifact_hash[2:]),
            "issuedAt": 1_790_000_000,
        },
    }

    recovered = Account.recover_message(encode_typed_data(full_message=typed), signature=signed.signature)

    assert recovered == signed.signer
    assert receipt.as_dict()["minerAddress"] == MINER
