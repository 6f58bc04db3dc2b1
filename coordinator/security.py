import base64
import binascii
import hashlib
import hmac
import re
from typing import Any, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
PRIVATE_KEY_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_NORMALIZED_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{40}$")


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def safe_equal(left: str, right: str) -> bool:
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))


def normalize_miner(value: Any) -> Optional[str]:
    """Lowercase an 0x-prefixed 20-byte address, or None when it is not one."""
    if not isinstance(value, str):
        return None
    lowered = value.lower()
    if not _NORMALIZED_ADDRESS_RE.match(lowered):
        return None
    return lowered


def is_address(value: str) -> bool:
    return bool(value) and ADDRESS_RE.match(value) is not None


def is_private_key(value: str) -> bool:
    return bool(value) and PRIVATE_KEY_RE.match(value) is not None


def load_ed25519_public_key(public_key_b64: str) -> Ed25519PublicKey:
    """Parse a base64 DER/SPKI Ed25519 key; raises ValueError on anything else."""
    try:
        der = base64.b64decode(public_key_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("public key is not base64") from exc
    key = serialization.load_der_public_key(der)
    if not isinstance(key, Ed25519PublicKey):
        raise ValueError("public key is not Ed25519")
    return key


def verify_ed25519_signature(public_key: Ed25519PublicKey, message: bytes, signature_b64: str) -> bool:
    try:
        signature_bytes = base64.b64decode(signature_b64, validate=True)
        public_key.verify(signature_bytes, message)
        return True
    except (binascii.Error, ValueError, InvalidSignature):
        return False
