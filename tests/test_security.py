from datetime import timedelta

import pytest

from app.core.security import create_access_token, decode_token, get_password_hash, verify_password


def test_password_hashing_and_verify():
    password = "S0meP@ss!WithLength"
    hashed = get_password_hash(password)
    assert hashed != password
    assert verify_password(password, hashed)
    assert verify_password("S0meP@ss!", hashed) is False


def test_short_password_rejected():
    with pytest.raises(ValueError):
        get_password_hash("short")


def test_access_token_round_trip(patch_jwt_keys):
    token = create_access_token("user-xyz", role="treasury", token_version=3)

    decoded = decode_token(token, expected_type="access")

    assert decoded["sub"] == "user-xyz"
    assert decoded["role"] == "treasury"
    assert decoded["type"] == "access"
    assert decoded["tv"] == 3
    assert "iat" in decoded


def test_expired_token_rejected(patch_jwt_keys):
    token = create_access_token("user-xyz", role="trade", expires_delta=timedelta(seconds=-5))
    with pytest.raises(ValueError):
        decode_token(token)


def test_wrong_token_type_rejected(patch_jwt_keys):
    token = create_access_token("user-xyz", role="trade")
    with pytest.raises(ValueError):
        decode_token(token, expected_type="refresh")


def test_tampered_token_rejected(patch_jwt_keys):
    token = create_access_token("user-xyz", role="trade")
    head, body, signature = token.split(".")
    with pytest.raises(ValueError):
        decode_token(f"{head}.{body}.{signature[::-1]}")


def test_shared_secret_algorithm_signs_with_secret_key(monkeypatch):
    from app.core import security
    from app.core.settings import settings

    monkeypatch.setattr(settings, "jwt_algorithm", "HS256")
    monkeypatch.setattr(settings, "secret_key", "local-dev-secret")
    security._load_private_key.cache_clear()
    security._load_public_key.cache_clear()
    try:
        token = create_access_token("user-xyz", role="admin")
        assert decode_token(token, expected_type="access")["role"] == "admin"
    finally:
        security._load_private_key.cache_clear()
        security._load_public_key.cache_clear()
