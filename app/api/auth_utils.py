from typing import Optional

from app.core.security import verify_password
from app.utils.login_security import check_lockout, register_signin_attempt

_FAKE_HASH = "$2b$12$EixZaYVK1fsbw1ZfbX3OXePaWrn3ILAWO.P3K.fc8G2.0G7u6g.2"


def constant_time_verify(user_password_hash: Optional[str], password: str) -> bool:
    if user_password_hash:
        return verify_password(password, user_password_hash)
    # Dummy verification to equalize timing
    verify_password(password, _FAKE_HASH)
    return False


async def enforce_signin_limits(email: str) -> None:
    await check_lockout(email.lower())


async def record_signin_attempt(email: str, success: bool) -> None:
    await register_signin_attempt(email.lower(), success)
