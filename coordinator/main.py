import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .routes import agent, mining, public

logger = logging.getLogger(__name__)

app = FastAPI(title="ClawMiner Lease Coordinator")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    detail = f"{type(exc).__name__}: {exc}"
    return JSONResponse(status_code=500, content={"error": "internal_error", "detail": detail})


app.include_router(public.router)
app.include_router(agent.router)
app.include_router(mining.router)
