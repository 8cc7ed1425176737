import pytest
from fastapi.testclient import TestClient

from sessionauth.api.v1 import auth as auth_routes
from sessionauth.core.database import get_db
from sessionauth.main import app
from sessionauth.schemas.user import Provider
from sessionauth.services.token_store import RefreshTokenStore
from sessionauth.services.user_service import user_service

CHROME = {"User-Agent": "Chrome"}


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _register(client, email="alice@example.com", password="secret123"):
    return client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": password, "password_repeat": password},
    )


def _login(client, email="alice@example.com", password="secret123", headers=CHROME):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password}, headers=headers)


def test_register_returns_public_user(client):
    response = _register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "alice@example.com"
    assert body["roles"] == ["USER"]
    assert "password_hash" not in body
    assert "provider" not in body


def test_register_conflict_and_validation(client):
    _register(client)
    assert _register(client).status_code == 409

    mismatch = client.post(
        "/api/v1/auth/register",
        json={"email": "bob@example.com", "password": "secret123", "password_repeat": "secret124"},
    )
    assert mismatch.status_code == 422
    assert mismatch.json()["success"] is False


def test_passwords_beyond_bcrypt_limit_are_rejected_up_front(client):
    # 40 characters, 80 bytes
    long_password = "é" * 40
    assert _register(client, password=long_password).status_code == 422

    _register(client)
    response = _login(client, password="x" * 80)
    assert response.status_code == 422
    assert response.json()["error"] == "Validation failed"


def test_login_sets_refresh_cookie_and_returns_access_token(client):
    _register(client)

    response = _login(client)

    assert response.status_code == 201
    body = response.json()
    assert body["access_token"]
    assert body["token_type"] == "bearer"
    assert "refresh_token" not in body

    set_cookie = response.headers["set-cookie"].lower()
    assert set_cookie.startswith("refreshtoken=")
    assert "httponly" in set_cookie
    assert "samesite=lax" in set_cookie
    assert "expires=" in set_cookie
    assert "path=/" in set_cookie


def test_login_failure_does_not_reveal_account_existence(client):
    _register(client)

    unknown = _login(client, email="nobody@example.com")
    wrong = _login(client, password="wrong-password")

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json()["error"] == wrong.json()["error"] == "Wrong login or password"
    assert "set-cookie" not in unknown.headers


def test_refresh_cookie_rotation(client, session_factory):
    _register(client)
    _login(client)
    old_token = client.cookies.get("refreshtoken")

    refreshed = client.get("/api/v1/auth/refresh-tokens", headers=CHROME)

    assert refreshed.status_code == 201
    assert refreshed.json()["access_token"]
    new_token = client.cookies.get("refreshtoken")
    assert new_token and new_token != old_token

    client.cookies.clear()
    client.cookies.set("refreshtoken", old_token)
    replay = client.get("/api/v1/auth/refresh-tokens", headers=CHROME)
    assert replay.status_code == 401

    db = session_factory()
    try:
        assert RefreshTokenStore.find(db, new_token) is not None
    finally:
        db.close()


def test_refresh_without_cookie_is_unauthorized(client):
    response = client.get("/api/v1/auth/refresh-tokens", headers=CHROME)
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_logout(client, session_factory):
    assert client.get("/api/v1/auth/logout").status_code == 200

    _register(client)
    _login(client)
    token = client.cookies.get("refreshtoken")

    response = client.get("/api/v1/auth/logout")

    assert response.status_code == 200
    assert response.headers["set-cookie"].lower().startswith("refreshtoken=")
    db = session_factory()
    try:
        assert RefreshTokenStore.find(db, token) is None
    finally:
        db.close()


def test_user_lookup_requires_access_token(client):
    _register(client)
    access_token = _login(client).json()["access_token"]

    assert client.get("/api/v1/users/alice@example.com").status_code == 401

    response = client.get(
        "/api/v1/users/alice@example.com",
        headers={"Authorization": f"Bearer {access_token}"},
    )
    assert response.status_code == 200
    assert response.json()["email"] == "alice@example.com"

    missing = client.get(
        "/api/v1/users/nobody@example.com",
        headers={"Authorization": f"Bearer {access_token}"},
    )
    assert missing.status_code == 404


def test_google_login_creates_provider_account(client, session_factory, monkeypatch):
    calls = []

    def fake_verify(provider, token):
        calls.append((provider, token))
        return "new@x.com"

    monkeypatch.setattr(auth_routes.provider_verifier, "verify", fake_verify)

    response = client.get("/api/v1/auth/success-google", params={"token": "abc"}, headers=CHROME)

    assert response.status_code == 201
    assert response.json()["access_token"]
    assert client.cookies.get("refreshtoken")
    assert calls == [(Provider.GOOGLE, "abc")]

    db = session_factory()
    try:
        user = user_service.find_user(db, "new@x.com")
        assert user.provider == "GOOGLE"
    finally:
        db.close()


def test_admin_block_revokes_sessions(client, session_factory):
    db = session_factory()
    try:
        user_service.ensure_admin(db, "admin@example.com", "admin-password")
    finally:
        db.close()

    _register(client)
    user_access = _login(client).json()["access_token"]
    user_id = client.get(
        "/api/v1/users/alice@example.com",
        headers={"Authorization": f"Bearer {user_access}"},
    ).json()["id"]
    admin_access = _login(client, email="admin@example.com", password="admin-password").json()["access_token"]

    forbidden = client.post(
        f"/api/v1/admin/users/{user_id}/block",
        headers={"Authorization": f"Bearer {user_access}"},
    )
    assert forbidden.status_code == 403

    blocked = client.post(
        f"/api/v1/admin/users/{user_id}/block",
        headers={"Authorization": f"Bearer {admin_access}"},
    )
    assert blocked.status_code == 200
    assert blocked.json()["revoked_refresh_tokens"] == 1

    rejected = client.get(
        "/api/v1/users/alice@example.com",
        headers={"Authorization": f"Bearer {user_access}"},
    )
    assert rejected.status_code == 401
