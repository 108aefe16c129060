from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.core.limiter import limiter
from app.core.health import (
    health_payload,
    live_payload,
    ready_payload,
    status_summary_payload,
)

router = APIRouter(tags=["health"])


def _with_readiness_status(payload: dict) -> JSONResponse:
    if payload.get("ready"):
        return JSONResponse(status_code=200, content=payload)
    return JSONResponse(
        status_code=503,
        content={
            "code": "service_unavailable",
            "message": "Service Unavailable",
            "data": payload,
            "details": {},
        },
    )


@router.get("/health/live", summary="Service liveness check")
@limiter.exempt
async def health_live() -> dict:
    return await live_payload()


@router.get("/health/ready", summary="Service readiness check")
@limiter.exempt
async def health_ready() -> JSONResponse:
    return _with_readiness_status(await ready_payload())


@router.get("/health", summary="Readiness check with component details")
@limiter.exempt
async def read_health() -> dict:
    return await health_payload()


@router.get("/status/summary", tags=["status"], summary="Service status summary")
@limiter.exempt
async def status_summary() -> dict:
    return await status_summary_payload()
