import logging

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from app.db.init_db import init_db
from app.db.session import engine
from app.utils.redis_client import get_redis_client

logger = logging.getLogger(__name__)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Application startup")
        try:
            await init_db()
        except (SQLAlchemyError, OSError):
            logger.exception("Admin seeding failed; continuing startup")

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Application shutdown")
        await get_redis_client().aclose()
        await engine.dispose()
