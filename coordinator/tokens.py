"""Stateless HMAC-signed registration and lease tokens."""
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from itsdangerous import BadData, Signer
from itsdangerous.encoding import base64_decode, base64_encode

from .settings import COORDINATOR_HMAC_SECRET

TOKEN_VERSION = 1
KIND_REGISTER = "register"
KIND_LEASE = "lease"


class TokenError(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class VerifiedToken:
    kind: str
    payload: Dict[str, Any]
    issued_at: int
    expires_at: int


class TokenCodec:
    def __init__(self, secret: str) -> None:
        self._signer = Signer(
            secret,
            sep=".",
            key_derivation="none",
            digest_method=hashlib.sha256,
        )

    def issue(self, kind: str, payload: Dict[str, Any], ttl_seconds: int, now: Optional[float] = None) -> str:
        issued_at = int(time.time() if now is None else now)
        envelope = {
            "v": TOKEN_VERSION,
            "kind": kind,
            "iat": issued_at,
            "exp": issued_at + int(ttl_seconds),
            "payload": payload,
        }
        body = base64_encode(json.dumps(envelope, separators=(",", ":")).encode("utf-8"))
        return self._signer.sign(body).decode("ascii")

    def verify(self, token: Any, expected_kind: str, now: Optional[float] = None) -> VerifiedToken:
        if not isinstance(token, str) or len(token) < 10 or token.count(".") != 1:
            raise TokenError("invalid_format")
        body, signature = token.split(".")
        if not body or not signature:
            raise TokenError("invalid_format")
        try:
            body_bytes = body.encode("ascii")
            signature_bytes = signature.encode("ascii")
        except UnicodeEncodeError:
            raise TokenError("invalid_format")

        expected_signature = self._signer.get_signature(body_bytes)
        if not hmac.compare_digest(expected_signature, signature_bytes):
            raise TokenError("invalid_signature")

        try:
            envelope = json.loads(base64_decode(body_bytes).decode("utf-8"))
        except (BadData, UnicodeDecodeError, ValueError):
            raise TokenError("invalid_payload")
        if not isinstance(envelope, dict):
            raise TokenError("invalid_payload")

        if envelope.get("v") != TOKEN_VERSION or envelope.get("kind") != expected_kind:
            raise TokenError("wrong_kind")

        current = int(time.time() if now is None else now)
        expires_at = envelope.get("exp")
        if not isinstance(expires_at, int) or isinstance(expires_at, bool) or expires_at < current:
            raise TokenError("expired")

        payload = envelope.get("payload")
        return VerifiedToken(
            kind=expected_kind,
            payload=payload if isinstance(payload, dict) else {},
            issued_at=int(envelope.get("iat") or 0),
            expires_at=expires_at,
        )


def token_codec() -> TokenCodec:
    return TokenCodec(COORDINATOR_HMAC_SECRET)
