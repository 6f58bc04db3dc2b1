import base64
import hashlib
import hmac
import json
import string

import pytest
from itsdangerous.encoding import base64_decode, base64_encode

from coordinator.tokens import KIND_LEASE, KIND_REGISTER, TokenCodec, TokenError

NOW = 1_790_000_000


def test_issue_then_verify_returns_payload(codec):
    payload = {"minerAddress": "0x" + "1" * 40, "agentPublicKey": "MCow", "serverNonce": "abc"}
    token = codec.issue(KIND_REGISTER, payload, 900, now=NOW)

    verified = codec.verify(token, KIND_REGISTER, now=NOW)

    assert verified.payload == payload
    assert verified.issued_at == NOW
    assert verified.expires_at == NOW + 900


def test_wire_format_is_base64url_json_and_hmac_sha256():
    codec = TokenCodec("wire-secret")
    token = codec.issue(KIND_LEASE, {"minerAddress": "0x" + "2" * 40}, 60, now=NOW)

    body, signature = token.split(".")
    envelope = json.loads(base64.urlsafe_b64decode(body + "=" * (-len(body) % 4)))
    assert envelope == {
        "v": 1,
        "kind": "lease",
        "iat": NOW,
        "exp": NOW + 60,
        "payload": {"minerAddress": "0x" + "2" * 40},
    }
    digest = hmac.new(b"wire-secret", body.encode("ascii"), hashlib.sha256).digest()
    assert signature == base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


@pytest.mark.parametrize("bit", [0, 7, 100, 255])
def test_flipped_signature_bit_is_rejected(codec, bit):
    token = codec.issue(KIND_LEASE, {"minerAddress": "0x" + "3" * 40}, 60, now=NOW)
    body, signature = token.split(".")
    raw = bytearray(base64_decode(signature))
    raw[bit // 8] ^= 1 << (bit % 8)
    tampered = f"{body}.{base64_encode(bytes(raw)).decode('ascii')}"

    with pytest.raises(TokenError) as excinfo:
        codec.verify(tampered, KIND_LEASE, now=NOW)
    assert excinfo.value.reason == "invalid_signature"


URLSAFE_ALPHABET = string.ascii_letters + string.digits + "-_"


@pytest.mark.parametrize("position", [0, 21, -1])
def test_any_other_signature_character_is_rejected(codec, position):
    token = codec.issue(KIND_LEASE, {"minerAddress": "0x" + "3" * 40}, 60, now=NOW)
    body, signature = token.split(".")
    index = position % len(signature)

    for char in URLSAFE_ALPHABET.replace(signature[index], ""):
        tampered = f"{body}.{signature[:index]}{char}{signature[index + 1:]}"
        with pytest.raises(TokenError) as excinfo:
            codec.verify(tampered, KIND_LEASE, now=NOW)
        assert excinfo.value.reason == "invalid_signature", char


def test_padded_signature_is_rejected(codec):
    token = codec.issue(KIND_LEASE, {}, 60, now=NOW)
    with pytest.raises(TokenError) as excinfo:
        codec.verify(token + "=", KIND_LEASE, now=NOW)
    assert excinfo.value.reason == "invalid_signature"


def test_other_secret_is_rejected(codec):
    token = TokenCodec("someone-else").issue(KIND_LEASE, {}, 60, now=NOW)
    with pytest.raises(TokenError) as excinfo:
        codec.verify(token, KIND_LEASE, now=NOW)
    assert excinfo.value.reason == "invalid_signature"


def test_registration_token_cannot_be_used_as_lease(codec):
    token = codec.issue(KIND_REGISTER, {"minerAddress": "0x" + "4" * 40}, 60, now=NOW)
    with pytest.raises(TokenError) as excinfo:
        codec.verify(token, KIND_LEASE, now=NOW)
    assert excinfo.value.reason == "wrong_kind"


def test_expiry_boundary(codec):
    token = codec.issue(KIND_LEASE, {}, 60, now=NOW)

    assert codec.verify(token, KIND_LEASE, now=NOW + 60).expires_at == NOW + 60
    with pytest.raises(TokenError) as excinfo:
        codec.verify(token, KIND_LEASE, now=NOW + 61)
    assert excinfo.value.reason == "expired"


@pytest.mark.parametrize("token", [None, 42, "", "short.x", "no-dot-anywhere-here", "a.b.c-long-enough", ".abcdefghijkl", "abcdefghijkl."])
def test_malformed_tokens(codec, token):
    with pytest.raises(TokenError) as excinfo:
        codec.verify(token, KIND_LEASE, now=NOW)
    assert excinfo.value.reason == "invalid_format"


@pytest.mark.parametrize("body", [b"not-json!!", base64_encode(b"[1, 2, 3]"), base64_encode(b"{broken")])
def test_signed_garbage_is_invalid_payload(codec, body):
    token = codec._signer.sign(body).decode("ascii")
    with pytest.raises(TokenError) as excinfo:
        codec.verify(token, KIND_LEASE, now=NOW)
    assert excinfo.value.reason == "invalid_payload"


def test_unknown_version_is_wrong_kind(codec):
    envelope = {"v": 2, "kind": "lease", "iat": NOW, "exp": NOW + 60, "payload": {}}
    body = base64_encode(json.dumps(envelope).encode("utf-8"))
    token = codec._signer.sign(body).decode("ascii")
    with pytest.raises(TokenError) as excinfo:
        codec.verify(token, KIND_LEASE, now=NOW)
    assert excinfo.value.reason == "wrong_kind"
