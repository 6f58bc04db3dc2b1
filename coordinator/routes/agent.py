from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ..core import ProveError, json_error, prove_agent, read_json_body, register_agent, renew_lease
from ..schemas import ProveRequest, RegisterRequest, RenewRequest, RequestError, decode_body

router = APIRouter(prefix="/v1/agent")


@router.post("/register")
async def agent_register(request: Request) -> JSONResponse:
    payload, error = await read_json_body(request)
    if error:
        return error
    try:
        body = decode_body(RegisterRequest, payload, "missing_or_invalid_fields")
        registration = await run_in_threadpool(register_agent, body.minerAddress, body.agentPublicKey)
    except RequestError as exc:
        return json_error(exc.code, exc.status_code)
    except ProveError as exc:
        return JSONResponse(status_code=exc.status_code, content=exc.as_dict())
    return JSONResponse(content=registration.as_dict())


@router.post("/prove")
async def agent_prove(request: Request) -> JSONResponse:
    payload, error = await read_json_body(request)
    if error:
        return error
    try:
        body = decode_body(ProveRequest, payload, "missing_or_invalid_fields")
        lease = await run_in_threadpool(
            prove_agent, body.minerAddress, body.walletSig, body.agentSig, body.registrationToken
        )
    except RequestError as exc:
        return json_error(exc.code, exc.status_code)
    except ProveError as exc:
        return JSONResponse(status_code=exc.status_code, content=exc.as_dict())
    return JSONResponse(
        content={
            "leaseToken": lease.lease_token,
            "expiresInSeconds": lease.expires_in_seconds,
            "minerAddress": lease.miner_address,
        }
    )


@router.post("/renew")
async def agent_renew(request: Request) -> JSONResponse:
    payload, error = await read_json_body(request)
    if error:
        return error
    try:
        body = decode_body(RenewRequest, payload, "missing_leaseToken")
        lease = await run_in_threadpool(renew_lease, body.leaseToken)
    except RequestError as exc:
        return json_error(exc.code, exc.status_code)
    except ProveError as exc:
        return JSONResponse(status_code=exc.status_code, content=exc.as_dict())
    return JSONResponse(
        content={"ok": True, "leaseToken": lease.lease_token, "expiresInSeconds": lease.expires_in_seconds}
    )
