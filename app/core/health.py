from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.settings import settings
from app.db.session import engine
from app.services.storage.service import get_storage_adapter
from app.utils.redis_client import get_redis_client

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _check_db() -> dict[str, str]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Database health check failed: %s", exc)
        return {"status": "error", "error": exc.__class__.__name__}


async def _check_redis() -> dict[str, str]:
    try:
        await get_redis_client().ping()
        return {"status": "ok"}
    except (RedisError, OSError) as exc:
        logger.warning("Redis health check failed: %s", exc)
        return {"status": "error", "error": exc.__class__.__name__}


async def _check_storage() -> dict[str, str]:
    try:
        adapter = get_storage_adapter()
    except (ValueError, OSError) as exc:
        return {"status": "error", "error": str(exc)}
    return {"status": "ok", "provider": adapter.provider}


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(check.get("status") == "ok" for check in checks.values())
    return ("ok" if ready else "degraded", ready)


async def _run_checks() -> dict[str, dict[str, str]]:
    return {
        "api": {"status": "ok", "version": APP_VERSION},
        "database": await _check_db(),
        "redis": await _check_redis(),
        "storage": await _check_storage(),
    }


async def live_payload() -> dict[str, str]:
    return {"status": "ok", "timestamp": _now()}


async def ready_payload() -> dict[str, Any]:
    checks = await _run_checks()
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "timestamp": _now(),
        "checks": checks,
    }


async def status_summary_payload() -> dict[str, Any]:
    payload = await ready_payload()
    payload["version"] = APP_VERSION
    payload["policy"] = {
        "require_verification_before_decision": settings.require_verification_before_decision,
        "marketing_sees_all": settings.marketing_sees_all,
    }
    return payload


async def health_payload() -> dict[str, Any]:
    return await ready_payload()
