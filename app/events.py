import logging

from fastapi import FastAPI

from app.core.health import APP_VERSION
from app.core.settings import settings
from app.db.init_db import init_db
from app.db.session import engine
from app.utils.redis_client import close_redis_client

logger = logging.getLogger(__name__)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def seed_plan_catalog() -> None:
        logger.info("Starting version=%s environment=%s", APP_VERSION, settings.environment)
        if settings.seed_default_plans:
            await init_db()
        else:
            logger.info("Plan seeding disabled; catalog left as migrated")

    @app.on_event("shutdown")
    async def release_connections() -> None:
        await close_redis_client()
        await engine.dispose()
        logger.info("Shutdown complete")
