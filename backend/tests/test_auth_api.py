from __future__ import annotations

import datetime as dt

from app.core.security import TokenService, utcnow
from conftest import NEW_PASSWORD, PASSWORD, bearer


def _register(client, *, username: str = "carol", email: str = "carol@example.com", password: str = PASSWORD):
    return client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password, "password_confirm": password},
    )


def _login(client, email: str, password: str = PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_register_returns_tokens_and_sets_cookies(client) -> None:
    response = _register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    assert body["refresh_token"]
    assert body["user"]["email"] == "carol@example.com"
    assert body["user"]["role"] == "user"
    assert "password_hash" not in body["user"]
    assert client.cookies.get("jwt") == body["access_token"]


def test_register_duplicate_email(client, user) -> None:
    response = _register(client, email="Alice@Example.com")

    assert response.status_code == 400
    assert response.json()["error_code"] == "DUPLICATE_EMAIL"


def test_register_weak_password(client) -> None:
    response = _register(client, password="weakpassword1")

    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "VALIDATION_ERROR"
    assert {"field": "password", "message": "password_too_weak"} in body["details"]["errors"]


def test_register_password_confirmation_mismatch(client) -> None:
    response = client.post(
        "/api/auth/register",
        json={"username": "carol", "email": "carol@example.com", "password": PASSWORD, "password_confirm": NEW_PASSWORD},
    )

    assert response.status_code == 400
    messages = [err["message"] for err in response.json()["details"]["errors"]]
    assert "password_confirmation_mismatch" in messages


def test_register_rejects_bad_username(client) -> None:
    response = _register(client, username="bad name!")

    assert response.status_code == 400
    assert response.json()["details"]["errors"][0]["field"] == "username"


def test_login_success(client, user) -> None:
    response = _login(client, "ALICE@example.com")

    assert response.status_code == 200
    assert response.json()["user"]["id"] == str(user.id)


def test_login_wrong_password_and_unknown_email_look_alike(client, user) -> None:
    wrong = _login(client, "alice@example.com", "Wr0ngPass!")
    unknown = _login(client, "nobody@example.com")

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json()["message"] == unknown.json()["message"] == "invalid_credentials"


def test_login_inactive_user_fails(client, db_session, user) -> None:
    user.is_active = False
    db_session.commit()

    assert _login(client, "alice@example.com").status_code == 401


def test_refresh_with_cookie(client, user) -> None:
    _login(client, "alice@example.com")

    response = client.post("/api/auth/refresh-token")

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "alice@example.com"


def test_refresh_with_body(client, user, token_service) -> None:
    refresh = token_service.issue_refresh_token(user.id)

    response = client.post("/api/auth/refresh-token", json={"refresh_token": refresh})

    assert response.status_code == 200
    assert response.json()["access_token"]


def test_refresh_rejects_access_token(client, user, token_service) -> None:
    response = client.post("/api/auth/refresh-token", json={"refresh_token": token_service.issue_access_token(user.id)})

    assert response.status_code == 401
    assert response.json()["message"] == "invalid_refresh_token"


def test_refresh_with_expired_token(app, client, user) -> None:
    settings = app.state.settings
    lifetime = dt.timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    issuer = TokenService.from_settings(settings, clock=lambda: utcnow() - lifetime - dt.timedelta(seconds=5))

    response = client.post("/api/auth/refresh-token", json={"refresh_token": issuer.issue_refresh_token(user.id)})

    assert response.status_code == 401
    assert response.json()["message"] == "refresh_token_expired"


def test_refresh_without_token(client) -> None:
    response = client.post("/api/auth/refresh-token")

    assert response.status_code == 401
    assert response.json()["message"] == "refresh_token_missing"


def test_forgot_password_unknown_email(client) -> None:
    response = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})

    assert response.status_code == 404
    assert response.json()["message"] == "user_not_found"


def test_forgot_and_reset_password_flow(client, user) -> None:
    forgot = client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})
    assert forgot.status_code == 200
    token = forgot.json()["reset_token"]

    reset = client.post(
        f"/api/auth/reset-password/{token}",
        json={"password": NEW_PASSWORD, "password_confirm": NEW_PASSWORD},
    )
    assert reset.status_code == 200
    assert reset.json()["user"]["email"] == "alice@example.com"

    assert _login(client, "alice@example.com").status_code == 401
    assert _login(client, "alice@example.com", NEW_PASSWORD).status_code == 200

    reused = client.post(
        f"/api/auth/reset-password/{token}",
        json={"password": PASSWORD, "password_confirm": PASSWORD},
    )
    assert reused.status_code == 400
    assert reused.json()["error_code"] == "INVALID_RESET_TOKEN"


def test_reset_password_with_unknown_token(client) -> None:
    response = client.post(
        "/api/auth/reset-password/deadbeef",
        json={"password": NEW_PASSWORD, "password_confirm": NEW_PASSWORD},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "invalid_or_expired_reset_token"


def test_update_password_requires_current_password(client, user, user_headers) -> None:
    response = client.post(
        "/api/auth/update-password",
        headers=user_headers,
        json={"current_password": "Wr0ngPass!", "password": NEW_PASSWORD, "password_confirm": NEW_PASSWORD},
    )

    assert response.status_code == 401
    assert response.json()["message"] == "incorrect_current_password"


def test_update_password_issues_working_tokens(client, user, user_headers) -> None:
    response = client.post(
        "/api/auth/update-password",
        headers=user_headers,
        json={"current_password": PASSWORD, "password": NEW_PASSWORD, "password_confirm": NEW_PASSWORD},
    )

    assert response.status_code == 200
    fresh = response.json()["access_token"]
    assert client.get("/api/auth/me", headers=bearer(fresh)).status_code == 200
    assert _login(client, "alice@example.com", NEW_PASSWORD).status_code == 200


def test_me_returns_public_profile(client, user, user_headers) -> None:
    response = client.get("/api/auth/me", headers=user_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["username"] == "alice"
    assert set(body) == {"id", "username", "email", "role", "is_active", "created_at"}


def test_logout(client, user, user_headers) -> None:
    response = client.post("/api/auth/logout", headers=user_headers)

    assert response.status_code == 200
    assert response.json() == {"status": "success", "message": "logged_out"}
    assert "jwt=" in response.headers.get("set-cookie", "")
