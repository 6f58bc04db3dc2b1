"""Request records decoded once at the HTTP boundary."""
from typing import Any, Type, TypeVar

from pydantic import BaseModel, Field, StrictStr, ValidationError, field_validator

from .challenge import nonce_is_valid
from .security import normalize_miner

ModelT = TypeVar("ModelT", bound=BaseModel)


class RequestError(Exception):
    def __init__(self, code: str, status_code: int = 400) -> None:
        super().__init__(code)
        self.code = code
        self.status_code = status_code


class MinerRequest(BaseModel):
    minerAddress: StrictStr

    @field_validator("minerAddress")
    @classmethod
    def normalize_address(cls, value: str) -> str:
        miner = normalize_miner(value)
        if miner is None:
            raise ValueError("minerAddress must be 0x followed by 40 hex digits")
        return miner


class RegisterRequest(MinerRequest):
    agentPublicKey: StrictStr = Field(min_length=1)


class ProveRequest(MinerRequest):
    walletSig: StrictStr = Field(min_length=1)
    agentSig: StrictStr = Field(min_length=1)
    registrationToken: StrictStr = Field(min_length=1)


class RenewRequest(BaseModel):
    leaseToken: StrictStr = Field(min_length=1)


class SubmitRequest(BaseModel):
    nonce: StrictStr
    artifact: Any = None

    @field_validator("nonce")
    @classmethod
    def check_nonce(cls, value: str) -> str:
        if not nonce_is_valid(value):
            raise ValueError("nonce must be 1-80 characters without '|'")
        return value


def decode_body(model: Type[ModelT], payload: Any, error_code: str) -> ModelT:
    if not isinstance(payload, dict):
        raise RequestError(error_code)
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise RequestError(error_code) from exc
