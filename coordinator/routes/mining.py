from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ..challenge import make_challenge, nonce_is_valid, verify_artifact
from ..core import json_error, read_json_body, require_lease
from ..epoch import epoch_info
from ..lease_metrics import log_lease_event
from ..receipts import build_receipt, receipt_signer
from ..schemas import RequestError, SubmitRequest, decode_body
from ..settings import CREDITS_PER_SOLVE

router = APIRouter(prefix="/v1")


@router.get("/challenge")
def challenge(request: Request) -> JSONResponse:
    miner, error = require_lease(request)
    if error:
        return error
    nonce = request.query_params.get("nonce", "")
    if not nonce_is_valid(nonce):
        return json_error("missing_or_invalid_nonce", 400)

    info = epoch_info()
    pack = make_challenge(info["epochId"], miner, nonce)
    log_lease_event(event="challenge", miner=miner, status="issued", epoch_id=info["epochId"], nonce=nonce)
    return JSONResponse(
        content={
            "epochId": info["epochId"],
            "minerAddress": miner,
            "nonce": nonce,
            "challengeId": f"0x{pack.seed}",
            "creditsPerSolve": CREDITS_PER_SOLVE,
            "doc": pack.doc,
            "questions": pack.questions,
            "constraints": pack.constraints,
            "difficulty": info["difficulty"],
        }
    )


@router.post("/submit")
async def submit(request: Request) -> JSONResponse:
    miner, error = require_lease(request)
    if error:
        return error
    payload, error = await read_json_body(request)
    if error:
        return error
    try:
        body = decode_body(SubmitRequest, payload, "missing_or_invalid_nonce")
    except RequestError as exc:
        return json_error(exc.code, exc.status_code)

    return JSONResponse(content=await run_in_threadpool(grade_submission, miner, body.nonce, body.artifact))


def grade_submission(miner: str, nonce: str, artifact: Any) -> Dict[str, Any]:
    epoch_id = epoch_info()["epochId"]
    pack = make_challenge(epoch_id, miner, nonce)
    check = verify_artifact(pack.expected_artifact, artifact)
    if not check.passed:
        log_lease_event(
            event="submit", miner=miner, status="fail", reason=check.reason, epoch_id=epoch_id, nonce=nonce
        )
        return {"epochId": epoch_id, **check.as_dict()}

    receipt = build_receipt(
        epoch_id=epoch_id,
        miner_address=miner,
        challenge_seed=pack.seed,
        nonce=nonce,
        expected_artifact=pack.expected_artifact,
        credits_amount=CREDITS_PER_SOLVE,
    )
    signed = receipt_signer().sign(receipt)
    log_lease_event(
        event="submit",
        miner=miner,
        status="pass",
        reason=signed.warning,
        epoch_id=epoch_id,
        nonce=nonce,
        payload={"credits": CREDITS_PER_SOLVE, "signed": signed.signature is not None},
    )
    content = {
        "pass": True,
        "epochId": epoch_id,
        "credits": CREDITS_PER_SOLVE,
        "artifact": pack.expected_artifact,
        "receipt": receipt.as_dict(),
        "signature": signed.signature,
        "signer": signed.signer,
    }
    if signed.warning:
        content["warning"] = signed.warning
    return content
