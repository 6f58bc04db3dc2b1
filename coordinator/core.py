import base64
import logging
import re
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from cryptography.exceptions import UnsupportedAlgorithm
from fastapi import Request
from fastapi.responses import JSONResponse

from .lease_metrics import log_lease_event
from .proofs import (
    AgentKeyMaterials,
    AgentKeyProof,
    ProofError,
    WalletMaterials,
    WalletProof,
    build_prove_message,
)
from .security import load_ed25519_public_key, normalize_miner
from .settings import LEASE_TTL_SECONDS, REGISTER_TTL_SECONDS
from .state import LEASES, REGISTRATIONS, KeyValueStore, current_store
from .tokens import KIND_LEASE, KIND_REGISTER, TokenCodec, TokenError, token_codec

logger = logging.getLogger(__name__)

BEARER_RE = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def json_error(error: str, status_code: int, reason: Optional[str] = None) -> JSONResponse:
    content: Dict[str, Any] = {"error": error}
    if reason:
        content["reason"] = reason
    return JSONResponse(status_code=status_code, content=content)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    match = BEARER_RE.match(authorization)
    return match.group(1) if match else None


async def read_json_body(request: Request) -> Tuple[Any, Optional[JSONResponse]]:
    try:
        return await request.json(), None
    except ValueError:
        return None, json_error("invalid_json", 400)


def require_lease(request: Request) -> Tuple[Optional[str], Optional[JSONResponse]]:
    token = bearer_token(request.headers.get("authorization"))
    if not token:
        return None, json_error("missing_lease", 401)
    try:
        return verify_lease(token), None
    except TokenError as exc:
        return None, json_error("invalid_lease", 403, exc.reason)


class ProveError(Exception):
    def __init__(self, error: str, status_code: int = 403, reason: Optional[str] = None) -> None:
        super().__init__(error)
        self.error = error
        self.status_code = status_code
        self.reason = reason

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"error": self.error}
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass(frozen=True)
class Registration:
    miner_address: str
    server_nonce: str
    registration_token: str
    message_to_sign: str
    expires_in_seconds: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "minerAddress": self.miner_address,
            "serverNonce": self.server_nonce,
            "registrationToken": self.registration_token,
            "messageToSign": self.message_to_sign,
            "messageToSignBase64": base64.b64encode(self.message_to_sign.encode("utf-8")).decode("ascii"),
            "expiresInSeconds": self.expires_in_seconds,
        }


@dataclass(frozen=True)
class Lease:
    miner_address: str
    lease_token: str
    expires_in_seconds: int


def _codec(codec: Optional[TokenCodec]) -> TokenCodec:
    return codec or token_codec()


def _lease_expired(record: Any, current: int) -> bool:
    return not isinstance(record, dict) or int(record.get("expiresAt") or 0) < current


def prune_expired_leases(store: KeyValueStore, now: Optional[float] = None) -> int:
    current = int(time.time() if now is None else now)
    pruned = store.prune(LEASES, lambda record: _lease_expired(record, current))
    if pruned:
        logger.info("pruned %d expired leases", pruned)
    return pruned


def issue_lease(miner_address: str, codec: Optional[TokenCodec] = None, now: Optional[float] = None) -> Lease:
    issued_at = time.time() if now is None else now
    lease_token = _codec(codec).issue(KIND_LEASE, {"minerAddress": miner_address}, LEASE_TTL_SECONDS, now=issued_at)
    store = current_store()
    if store is not None:
        prune_expired_leases(store, issued_at)
        store.set(
            LEASES,
            lease_token,
            {"minerAddress": miner_address, "issuedAt": int(issued_at), "expiresAt": int(issued_at) + LEASE_TTL_SECONDS},
        )
    return Lease(miner_address=miner_address, lease_token=lease_token, expires_in_seconds=LEASE_TTL_SECONDS)


def verify_lease(lease_token: Any, codec: Optional[TokenCodec] = None, now: Optional[float] = None) -> str:
    """Return the lease's miner address or raise ``TokenError``."""
    verified = _codec(codec).verify(lease_token, KIND_LEASE, now=now)
    miner = normalize_miner(verified.payload.get("minerAddress"))
    if miner is None:
        raise TokenError("invalid_payload")
    return miner


def register_agent(
    miner_address: str,
    agent_public_key: str,
    codec: Optional[TokenCodec] = None,
    now: Optional[float] = None,
) -> Registration:
    miner = normalize_miner(miner_address)
    if miner is None:
        raise ProveError("missing_or_invalid_fields", status_code=400)
    try:
        load_ed25519_public_key(agent_public_key)
    except (ValueError, UnsupportedAlgorithm):
        raise ProveError("invalid_agentPubKey", status_code=400)

    server_nonce = str(uuid.uuid4())
    issued_at = time.time() if now is None else now
    claims = {"minerAddress": miner, "agentPublicKey": agent_public_key, "serverNonce": server_nonce}
    registration_token = _codec(codec).issue(KIND_REGISTER, claims, REGISTER_TTL_SECONDS, now=issued_at)

    store = current_store()
    if store is not None:
        store.set(
            REGISTRATIONS,
            miner,
            {"agentPublicKey": agent_public_key, "serverNonce": server_nonce, "registeredAt": int(issued_at)},
        )
    log_lease_event(event="register", miner=miner, status="ok", expires_at=issued_at + REGISTER_TTL_SECONDS)
    return Registration(
        miner_address=miner,
        server_nonce=server_nonce,
        registration_token=registration_token,
        message_to_sign=build_prove_message(miner, server_nonce),
        expires_in_seconds=REGISTER_TTL_SECONDS,
    )


def _check_agent_and_wallet(miner: str, claims: Dict[str, Any], wallet_sig: str, agent_sig: str) -> None:
    server_nonce = claims.get("serverNonce")
    if not isinstance(server_nonce, str):
        raise ProveError("invalid_registration_token", reason="invalid_payload")
    try:
        public_key = load_ed25519_public_key(claims.get("agentPublicKey") or "")
    except (ValueError, UnsupportedAlgorithm):
        raise ProveError("invalid_register_key")

    # The wallet message comes from the signed claims, never from the request.
    checks = (
        (AgentKeyProof(), AgentKeyMaterials(public_key, server_nonce, agent_sig)),
        (WalletProof(), WalletMaterials(miner, build_prove_message(miner, server_nonce), wallet_sig)),
    )
    for proof, materials in checks:
        try:
            verified = proof.verify(materials)
        except ProofError as exc:
            raise ProveError(exc.reason)
        if not verified:
            raise ProveError(proof.failure_reason)


def prove_agent(
    miner_address: str,
    wallet_sig: str,
    agent_sig: str,
    registration_token: str,
    codec: Optional[TokenCodec] = None,
    now: Optional[float] = None,
) -> Lease:
    """Trade a registration token plus both signatures for a lease.

    Registration tokens are not single-use: presenting the same token and
    signatures again before it expires mints another independent lease.
    """
    miner = normalize_miner(miner_address)
    if miner is None:
        raise ProveError("missing_or_invalid_fields", status_code=400)
    codec = _codec(codec)
    try:
        registration = codec.verify(registration_token, KIND_REGISTER, now=now)
    except TokenError as exc:
        log_lease_event(event="prove", miner=miner, status="denied", reason=exc.reason)
        raise ProveError("invalid_registration_token", reason=exc.reason)

    claims = registration.payload
    try:
        if claims.get("minerAddress") != miner:
            raise ProveError("register_token_miner_mismatch")
        _check_agent_and_wallet(miner, claims, wallet_sig, agent_sig)
        store = current_store()
        if store is not None and store.get(REGISTRATIONS, miner) is None:
            raise ProveError("unknown_miner", status_code=404)
    except ProveError as exc:
        log_lease_event(event="prove", miner=miner, status="denied", reason=exc.error)
        raise

    lease = issue_lease(miner, codec=codec, now=now)
    log_lease_event(event="prove", miner=miner, status="ok", expires_at=(now or time.time()) + lease.expires_in_seconds)
    return lease


def renew_lease(lease_token: str, codec: Optional[TokenCodec] = None, now: Optional[float] = None) -> Lease:
    codec = _codec(codec)
    try:
        miner = verify_lease(lease_token, codec=codec, now=now)
    except TokenError as exc:
        log_lease_event(event="renew", status="denied", reason=exc.reason)
        raise ProveError("invalid_lease", reason=exc.reason)
    lease = issue_lease(miner, codec=codec, now=now)
    log_lease_event(event="renew", miner=miner, status="ok")
    return lease


def active_agents(now: Optional[float] = None) -> int:
    store = current_store()
    if store is None:
        return 0
    current = int(time.time() if now is None else now)
    miners = {
        record.get("minerAddress")
        for _token, record in store.items(LEASES)
        if isinstance(record, dict) and int(record.get("expiresAt") or 0) >= current
    }
    return len(miners)
