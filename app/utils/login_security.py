import logging

from fastapi import HTTPException, status
from redis.exceptions import RedisError

from app.core.settings import settings
from app.utils.redis_client import get_redis_client

logger = logging.getLogger(__name__)


def _lockout_seconds() -> int:
    return max(1, settings.login_lockout_minutes * 60)


async def check_lockout(identifier: str) -> None:
    redis = get_redis_client()
    try:
        locked = await redis.get(f"signin:lock:{identifier}")
    except RedisError:
        logger.warning("Lockout store unavailable; skipping sign-in lockout check")
        return
    if locked:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many sign-in attempts; try later",
        )


async def register_signin_attempt(identifier: str, success: bool) -> None:
    redis = get_redis_client()
    fail_key = f"signin:fail:{identifier}"
    lock_key = f"signin:lock:{identifier}"
    try:
        if success:
            await redis.delete(fail_key, lock_key)
            return
        attempts = await redis.incr(fail_key)
        await redis.expire(fail_key, _lockout_seconds())
        if attempts >= settings.login_attempt_limit:
            await redis.setex(lock_key, _lockout_seconds(), 1)
            await redis.delete(fail_key)
    except RedisError:
        logger.warning("Lockout store unavailable; sign-in attempt not recorded")
