from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, text

from app.core.settings import settings
from app.db.session import AsyncSessionLocal, engine
from app.models.plan import Plan
from app.utils.redis_client import get_redis_client

APP_VERSION = "0.1.0"


async def _check_db() -> dict[str, str]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:  # pragma: no cover - exercised in runtime
        return {"status": "error", "error": str(exc)}


async def _check_redis() -> dict[str, str]:
    try:
        await get_redis_client().ping()
        return {"status": "ok"}
    except Exception as exc:
        return {"status": "error", "error": str(exc)}


async def _check_plan_catalog() -> dict[str, Any]:
    """Qualification is meaningless with an empty catalog, so readiness requires an active plan."""
    try:
        async with AsyncSessionLocal() as session:
            stmt = select(func.count()).select_from(Plan).where(Plan.is_active.is_(True))
            active = (await session.execute(stmt)).scalar_one()
    except Exception as exc:  # pragma: no cover - exercised in runtime
        return {"status": "error", "error": str(exc)}
    if not active:
        return {"status": "error", "error": "no active plans", "active_plans": 0}
    return {"status": "ok", "active_plans": int(active)}


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(check.get("status") == "ok" for check in checks.values())
    return ("ok" if ready else "degraded", ready)


async def live_payload() -> dict[str, str]:
    return {
        "status": "ok",
        "version": APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def ready_payload() -> dict[str, Any]:
    checks = {
        "database": await _check_db(),
        "redis": await _check_redis(),
        "plan_catalog": await _check_plan_catalog(),
    }
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "version": APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
