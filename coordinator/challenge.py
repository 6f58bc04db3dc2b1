from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .security import sha256_hex

SEED_DOMAIN = "clawminer"
SEED_SEPARATOR = "|"
MAX_NONCE_LENGTH = 80
OPERAND_RANGE = 9000
OPERAND_OFFSET = 1000
MODULUS = 97


@dataclass(frozen=True)
class ChallengePack:
    seed: str
    a: int
    b: int
    c: int
    modulus: int
    answer: int
    expected_artifact: str
    doc: str
    questions: List[str] = field(default_factory=list)
    constraints: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ArtifactCheck:
    passed: bool
    reason: Optional[str] = None
    expected_artifact: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"pass": self.passed}
        if self.reason:
            data["reason"] = self.reason
        if self.expected_artifact is not None:
            data["expectedArtifact"] = self.expected_artifact
        return data


def nonce_is_valid(nonce: Any) -> bool:
    return (
        isinstance(nonce, str)
        and 0 < len(nonce) <= MAX_NONCE_LENGTH
        and SEED_SEPARATOR not in nonce
    )


def challenge_seed(epoch_id: int, miner_address: str, nonce: str) -> str:
    material = SEED_SEPARATOR.join([SEED_DOMAIN, str(epoch_id), miner_address, nonce])
    return sha256_hex(material)


def _operand(seed: str, window: int) -> int:
    start = window * 8
    return int(seed[start:start + 8], 16) % OPERAND_RANGE + OPERAND_OFFSET


def format_artifact(epoch_id: int, answer: int) -> str:
    return f"CLAW-{epoch_id}-{answer}"


def make_challenge(epoch_id: int, miner_address: str, nonce: str) -> ChallengePack:
    """Derive the work package for one (epoch, miner, nonce) triple.

    The epoch id is taken as given; callers pin it once per request so the
    same triple always yields the same pack.
    """
    if not nonce_is_valid(nonce):
        raise ValueError("nonce must be 1-80 characters without '|'")
    seed = challenge_seed(epoch_id, miner_address, nonce)
    a, b, c = (_operand(seed, window) for window in range(3))
    answer = (a * b + c) % MODULUS
    expected_artifact = format_artifact(epoch_id, answer)

    doc = "\n".join(
        [
            "CLAWMINER work package (agent-only)",
            f"epoch={epoch_id}",
            f"miner={miner_address}",
            f"nonce={nonce}",
            "",
            f"Compute: (a*b + c) mod {MODULUS}",
            f"a={a}",
            f"b={b}",
            f"c={c}",
            "",
            "Output EXACTLY one line:",
            expected_artifact,
            "No extra characters, no spaces, no punctuation.",
        ]
    )
    return ChallengePack(
        seed=seed,
        a=a,
        b=b,
        c=c,
        modulus=MODULUS,
        answer=answer,
        expected_artifact=expected_artifact,
        doc=doc,
        questions=[
            f"Q1: What is (a*b + c) mod {MODULUS}?",
            f"Q2: Return exactly: {expected_artifact}",
        ],
        constraints=[
            "Artifact must be exactly one line",
            f"Artifact must equal: {expected_artifact}",
        ],
    )


def verify_artifact(expected_artifact: str, artifact: Any) -> ArtifactCheck:
    if not isinstance(artifact, str):
        return ArtifactCheck(False, "artifact_missing")
    if "\n" in artifact or "\r" in artifact:
        return ArtifactCheck(False, "artifact_multiline")
    if artifact.strip() != artifact:
        return ArtifactCheck(False, "artifact_whitespace")
    if artifact != expected_artifact:
        return ArtifactCheck(False, "artifact_mismatch", expected_artifact)
    return ArtifactCheck(True)
