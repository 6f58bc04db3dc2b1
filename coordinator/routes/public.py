from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core import active_agents
from ..epoch import TIERS, epoch_info, format_amount
from ..receipts import receipt_signer
from ..security import is_address
from ..settings import CHAIN_ID
from ..state import current_store

router = APIRouter()


@router.get("/healthz")
def healthz() -> JSONResponse:
    return JSONResponse(content={"ok": True})


@router.get("/v1/epoch")
def epoch() -> JSONResponse:
    info = epoch_info()
    return JSONResponse(
        content={
            **info,
            "epochMintDisplay": format_amount(info["epochMint"]),
            "mintedTotalDisplay": format_amount(info["mintedTotal"]),
            "tier": TIERS,
        }
    )


@router.get("/v1/stats")
def stats() -> JSONResponse:
    info = epoch_info()
    return JSONResponse(
        content={
            "epochId": info["epochId"],
            "activeAgents": active_agents(),
            "totalCreditsEpoch": 0,
            "mintedTotal": info["mintedTotal"],
        }
    )


@router.get("/v1/config")
def config() -> JSONResponse:
    signer = receipt_signer()
    return JSONResponse(
        content={
            "chainId": CHAIN_ID,
            "miningContract": signer.verifying_contract if is_address(signer.verifying_contract) else None,
            "coordinatorSigner": signer.address,
            "tokenMode": "hmac-stateless" if current_store() is None else "hmac-with-legacy-store",
        }
    )
