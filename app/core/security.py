from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.settings import settings

ACCESS_TOKEN_TYPE = "access"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    if len(password) < settings.default_password_min_length:
        raise ValueError(
            f"Password must be at least {settings.default_password_min_length} characters"
        )
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class JWTKeyError(RuntimeError):
    pass


def _uses_shared_secret() -> bool:
    return settings.jwt_algorithm.upper().startswith("HS")


def _key_material(inline: str | None, path: str | None, label: str) -> str:
    if _uses_shared_secret():
        return settings.secret_key
    if inline:
        return inline
    if path:
        return Path(path).read_text(encoding="utf-8")
    raise JWTKeyError(f"JWT {label} key not configured")


@lru_cache(maxsize=1)
def _load_private_key() -> str:
    return _key_material(settings.jwt_private_key, settings.jwt_private_key_path, "private")


@lru_cache(maxsize=1)
def _load_public_key() -> str:
    return _key_material(settings.jwt_public_key, settings.jwt_public_key_path, "public")


def create_access_token(
    subject: str,
    *,
    role: str,
    token_version: int | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign a short-lived access token.

    ``tv`` carries the user's token version; bumping it on the user row (logout,
    role change) invalidates every token issued before.
    """
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims: dict[str, Any] = {
        "sub": subject,
        "role": role,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    if token_version is not None:
        claims["tv"] = token_version
    return jwt.encode(claims, _load_private_key(), algorithm=settings.jwt_algorithm)


def decode_token(token: str, expected_type: str | None = None) -> dict[str, Any]:
    try:
        claims = jwt.decode(token, _load_public_key(), algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    if expected_type and claims.get("type") != expected_type:
        raise ValueError("Invalid token type")
    return claims
