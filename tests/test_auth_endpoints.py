from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.api import deps
from app.core.errors import Unauthorized
from app.core.security import create_access_token, get_password_hash
from app.db.session import get_db
from app.main import app
from app.models.user import User
from conftest import FakeAsyncSession, FakeResult, entity_handler, get_data, make_user

PASSWORD = "Password123!"


@pytest.fixture
def attempts(monkeypatch):
    recorded = []

    async def noop_enforce(email):
        return None

    async def record(email, success):
        recorded.append((email, success))

    monkeypatch.setattr("app.api.v1.routers.auth.enforce_signin_limits", noop_enforce)
    monkeypatch.setattr("app.api.v1.routers.auth.record_signin_attempt", record)
    return recorded


def override_db(session: FakeAsyncSession) -> None:
    async def _get_db():
        yield session

    app.dependency_overrides[get_db] = _get_db


@pytest.fixture(autouse=True)
def _clear_overrides():
    yield
    app.dependency_overrides.clear()


def _session_for(user: User | None) -> FakeAsyncSession:
    return FakeAsyncSession().on_execute(entity_handler(User, FakeResult(scalar=user)))


def test_signin_returns_token_and_user(patch_jwt_keys, attempts):
    user = make_user(role="trade", email="trader@example.com", password_hash=get_password_hash(PASSWORD))
    session = _session_for(user)
    override_db(session)

    client = TestClient(app)
    response = client.post(
        "/api/v1/auth/signin", json={"email": "trader@example.com", "password": PASSWORD}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["code"] == "ok"
    data = get_data(response)
    assert data["token_type"] == "bearer"
    assert data["user"]["role"] == "trade"
    assert data["user"]["email"] == "trader@example.com"
    assert "hashed_password" not in data["user"]
    assert session.committed is True
    assert attempts == [("trader@example.com", True)]


def test_signin_wrong_password_is_unauthorized(patch_jwt_keys, attempts):
    user = make_user(email="trader@example.com", password_hash=get_password_hash(PASSWORD))
    override_db(_session_for(user))

    client = TestClient(app)
    response = client.post(
        "/api/v1/auth/signin", json={"email": user.email, "password": "WrongPassword1!"}
    )

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"
    assert response.json()["message"] == "Invalid credentials"
    assert attempts == [("trader@example.com", False)]


def test_signin_unknown_email_is_unauthorized(patch_jwt_keys, attempts):
    override_db(_session_for(None))

    client = TestClient(app)
    response = client.post(
        "/api/v1/auth/signin", json={"email": "ghost@example.com", "password": PASSWORD}
    )

    assert response.status_code == 401


def test_signin_lockout_returns_429(patch_jwt_keys, monkeypatch):
    from fastapi import HTTPException

    async def locked(email):
        raise HTTPException(status_code=429, detail="Too many failed attempts. Try again later.")

    monkeypatch.setattr("app.api.v1.routers.auth.enforce_signin_limits", locked)
    override_db(_session_for(None))

    client = TestClient(app)
    response = client.post(
        "/api/v1/auth/signin", json={"email": "any@example.com", "password": PASSWORD}
    )

    assert response.status_code == 429
    assert response.json()["code"] == "rate_limited"


def test_me_with_issued_token(patch_jwt_keys):
    user = make_user(role="treasury")
    override_db(_session_for(user))
    token = create_access_token(str(user.id), role=user.role, token_version=user.token_version)

    client = TestClient(app)
    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert get_data(response)["id"] == str(user.id)
    assert user.last_active_at is not None


def test_me_without_token_is_unauthorized():
    client = TestClient(app)
    response = client.get("/api/v1/auth/me")
    assert response.status_code == 401


def test_logout_revokes_outstanding_tokens(patch_jwt_keys):
    user = make_user(role="marketing")
    override_db(_session_for(user))
    token = create_access_token(str(user.id), role=user.role, token_version=user.token_version)
    headers = {"Authorization": f"Bearer {token}"}

    client = TestClient(app)
    logout = client.post("/api/v1/auth/logout", headers=headers)
    assert logout.status_code == 200
    assert logout.json()["data"] is None
    assert user.token_version == 1

    again = client.get("/api/v1/auth/me", headers=headers)
    assert again.status_code == 401
    assert again.json()["message"] == "Token revoked"


def test_inactive_user_token_rejected(patch_jwt_keys):
    user = make_user(role="trade", is_active=False)
    override_db(_session_for(user))
    token = create_access_token(str(user.id), role=user.role, token_version=0)

    client = TestClient(app)
    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["message"] == "Inactive user"


def test_idle_session_rejected(patch_jwt_keys):
    user = make_user(
        role="trade", last_active_at=datetime.now(timezone.utc) - timedelta(hours=5)
    )
    override_db(_session_for(user))
    token = create_access_token(str(user.id), role=user.role, token_version=0)

    client = TestClient(app)
    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_enforce_inactivity_allows_recent_activity():
    now = datetime.now(timezone.utc)
    deps.enforce_inactivity(now - timedelta(minutes=1), now)
    deps.enforce_inactivity(None, now)
    with pytest.raises(Unauthorized):
        deps.enforce_inactivity(now - timedelta(days=1), now)


def test_register_creates_basic_user():
    session = FakeAsyncSession()
    override_db(session)

    client = TestClient(app)
    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": "New.User@example.com",
            "password": PASSWORD,
            "first_name": "New",
            "last_name": "User",
        },
    )

    assert response.status_code == 201
    data = get_data(response)
    assert data["role"] == "basic"
    assert data["email"] == "new.user@example.com"
    assert data["full_name"] == "New User"
    assert session.audit_actions() == ["user.registered"]


def test_register_duplicate_email_conflicts():
    existing = make_user(email="taken@example.com")
    override_db(_session_for(existing))

    client = TestClient(app)
    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": "taken@example.com",
            "password": PASSWORD,
            "first_name": "New",
            "last_name": "User",
        },
    )

    assert response.status_code == 409
    assert response.json()["code"] == "conflict"
