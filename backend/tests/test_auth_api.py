import time
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from taskmanager.api.deps import RequestAuthenticator, get_auth_service, get_authenticator
from taskmanager.core.database import get_db, get_session_factory
from taskmanager.models.security import SessionToken
from taskmanager.models.user import User
from taskmanager.main import app
from taskmanager.services.auth_service import AuthService

PASSWORD = "Secret123"


@pytest.fixture
def client(session_factory, settings):
    service = AuthService(settings.model_copy(update={"MAX_CONCURRENT_SESSIONS": 3}))

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_auth_service] = lambda: service
    app.dependency_overrides[get_authenticator] = lambda: RequestAuthenticator(service.settings, service.codec)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _register(client, email="carol@example.com"):
    response = client.post(
        "/api/v1/auth/register",
        json={"name": "Carol", "email": email, "password": PASSWORD},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _login(client, email="carol@example.com", password=PASSWORD, user_agent="pytest"):
    return client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
        headers={"User-Agent": user_agent},
    )


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_register_returns_tokens_without_secrets(client):
    data = _register(client)
    assert data["token_type"] == "bearer"
    assert data["access_token"] and data["refresh_token"]
    assert data["user"]["email"] == "carol@example.com"
    assert "password_hash" not in data["user"]
    assert "tokens" not in data["user"]


def test_register_duplicate_email(client):
    _register(client)
    response = client.post(
        "/api/v1/auth/register",
        json={"name": "Carol", "email": "CAROL@example.com", "password": PASSWORD},
    )
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["error"] == "User already exists with this email"


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "C", "email": "carol@example.com", "password": PASSWORD},
        {"name": "Carol", "email": "not-an-email", "password": PASSWORD},
        {"name": "Carol", "email": "carol@example.com", "password": "alllowercase1"},
        {"name": "Carol", "email": "carol@example.com"},
    ],
)
def test_register_validation_errors(client, payload):
    response = client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation errors"
    assert body["details"]


def test_login_then_me(client):
    registered = _register(client)
    response = _login(client)
    assert response.status_code == 200
    token = response.json()["data"]["access_token"]

    me = client.get("/api/v1/auth/me", headers=_bearer(token))
    assert me.status_code == 200
    assert me.json()["data"]["user"]["id"] == registered["user"]["id"]
    assert me.headers["X-Content-Type-Options"] == "nosniff"
    assert "X-Request-ID" in me.headers


def test_protected_route_requires_token(client):
    response = client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["error"] == "Access token required"

    response = client.get("/api/v1/auth/me", headers=_bearer("garbage"))
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token"


def test_wrong_password_then_lockout(client, settings):
    _register(client)
    unknown = _login(client, email="nobody@example.com")
    assert unknown.status_code == 401

    for _ in range(settings.MAX_LOGIN_ATTEMPTS):
        response = _login(client, password="Wrong1234")
        assert response.status_code == 401
        assert response.json()["error"] == unknown.json()["error"]

    locked = _login(client)
    assert locked.status_code == 423
    assert "locked_until" in locked.json()["details"]


def test_refresh_is_single_use(client):
    data = _register(client)

    first = client.post("/api/v1/auth/refresh", json={"refresh_token": data["refresh_token"]})
    assert first.status_code == 200
    rotated = first.json()["data"]
    assert rotated["refresh_token"] != data["refresh_token"]
    assert rotated["user"] is None

    replay = client.post("/api/v1/auth/refresh", json={"refresh_token": data["refresh_token"]})
    assert replay.status_code == 401
    assert replay.json()["error"] == "Refresh token not found or has been revoked"

    assert client.get("/api/v1/auth/me", headers=_bearer(rotated["access_token"])).status_code == 200
    assert client.get("/api/v1/auth/me", headers=_bearer(data["access_token"])).status_code == 401


def test_refresh_with_invalid_token(client):
    response = client.post("/api/v1/auth/refresh", json={"refresh_token": "x" * 40})
    assert response.status_code == 401


def test_logout_keeps_other_sessions(client):
    first = _register(client)
    second = _login(client, user_agent="Mozilla/5.0 (iPhone) Mobile").json()["data"]

    assert client.post("/api/v1/auth/logout", headers=_bearer(first["access_token"])).status_code == 200

    assert client.get("/api/v1/auth/me", headers=_bearer(first["access_token"])).status_code == 401
    sessions = client.get("/api/v1/auth/sessions", headers=_bearer(second["access_token"])).json()["data"]
    assert sessions["total"] == 1
    assert sessions["sessions"][0]["device_info"]["device_type"] == "Mobile"
    assert sessions["sessions"][0]["is_current"] is True


def test_sessions_listing_has_no_token_values(client):
    data = _register(client)
    response = client.get("/api/v1/auth/sessions", headers=_bearer(data["access_token"]))
    assert response.status_code == 200
    assert data["access_token"] not in response.text
    assert data["refresh_token"] not in response.text


def test_logout_all(client):
    first = _register(client)
    second = _login(client).json()["data"]

    response = client.post("/api/v1/auth/logout-all", headers=_bearer(second["access_token"]))
    assert response.status_code == 200

    for token in (first["access_token"], second["access_token"]):
        assert client.get("/api/v1/auth/sessions", headers=_bearer(token)).status_code == 401


def test_revoke_session(client):
    first = _register(client)
    second = _login(client).json()["data"]
    headers = _bearer(second["access_token"])

    sessions = client.get("/api/v1/auth/sessions", headers=headers).json()["data"]["sessions"]
    other = next(s for s in sessions if not s["is_current"])

    assert client.delete(f"/api/v1/auth/sessions/{other['id']}", headers=headers).status_code == 200
    assert client.get("/api/v1/auth/me", headers=_bearer(first["access_token"])).status_code == 401
    assert client.delete(f"/api/v1/auth/sessions/{other['id']}", headers=headers).status_code == 404


def test_session_cap_evicts_oldest(client):
    tokens = [_register(client)["access_token"]]
    for _ in range(3):
        tokens.append(_login(client).json()["data"]["access_token"])

    assert client.get("/api/v1/auth/me", headers=_bearer(tokens[0])).status_code == 401
    for token in tokens[1:]:
        assert client.get("/api/v1/auth/me", headers=_bearer(token)).status_code == 200


def test_root_and_metrics(client):
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["status"] == "running"

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "taskmanager_http_requests_total" in metrics.text


def test_health_reports_readiness(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["readiness"]["database"]["ok"] is True
    assert body["readiness"]["token_sweeper"]["running"] is False


def test_overlong_malformed_email_is_rejected_promptly(client):
    started = time.perf_counter()
    response = client.post("/api/v1/auth/login", json={"email": "a" * 30 + "!", "password": PASSWORD})
    elapsed = time.perf_counter() - started

    assert response.status_code == 400
    assert elapsed < 1.0


def test_login_email_is_case_insensitive(client):
    _register(client)
    assert _login(client, email="CAROL@Example.COM").status_code == 200


def test_sampled_sweep_cleans_request_store(client, session_factory, settings):
    service = AuthService(settings.model_copy(update={"TOKEN_SWEEP_SAMPLE_RATE": 1.0}))
    app.dependency_overrides[get_auth_service] = lambda: service
    app.dependency_overrides[get_authenticator] = lambda: RequestAuthenticator(service.settings, service.codec)

    data = _register(client)
    db = session_factory()
    try:
        now = datetime.utcnow()
        db.add(
            SessionToken(
                user_id=data["user"]["id"],
                access_token="access-stale",
                refresh_token="refresh-stale",
                is_active=True,
                expires_at=now - timedelta(seconds=1),
                refresh_expires_at=now + timedelta(days=1),
                created_at=now - timedelta(days=8),
            )
        )
        db.commit()
    finally:
        db.close()

    assert client.get("/api/v1/auth/me", headers=_bearer(data["access_token"])).status_code == 200

    db = session_factory()
    try:
        remaining = [record.access_token for record in db.query(SessionToken).all()]
    finally:
        db.close()
    assert remaining == [data["access_token"]]


def test_server_errors_do_not_leak_configuration(client, session_factory, settings):
    broken = AuthService(settings.model_copy(update={"REFRESH_TOKEN_SECRET": ""}))
    app.dependency_overrides[get_auth_service] = lambda: broken

    response = client.post(
        "/api/v1/auth/register",
        json={"name": "Carol", "email": "carol@example.com", "password": PASSWORD},
    )

    assert response.status_code == 500
    assert response.json()["error"] == "Internal server error"
    assert "REFRESH_TOKEN_SECRET" not in response.text

    db = session_factory()
    try:
        assert db.query(User).filter(User.email == "carol@example.com").first() is None
    finally:
        db.close()
