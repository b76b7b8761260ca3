from fastapi import APIRouter

from app.core.health import live_payload, ready_payload
from app.core.limiter import limiter

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live", summary="Process is up; touches no backing service")
@limiter.exempt
async def liveness() -> dict:
    return await live_payload()


@router.get(
    "/ready",
    summary="Database, Redis and an active plan catalog are all reachable",
)
@limiter.exempt
async def readiness() -> dict:
    return await ready_payload()
