from __future__ import annotations

import uuid

from app.services.users import create_user
from conftest import PASSWORD, bearer


def test_update_me_rejects_role_escalation(client, db_session, user, user_headers) -> None:
    response = client.patch("/api/users/me", headers=user_headers, json={"username": "alice_x", "role": "admin"})

    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "PROTECTED_FIELD"
    assert body["details"]["fields"] == ["role"]

    me = client.get("/api/auth/me", headers=user_headers).json()
    assert me["role"] == "user"
    assert me["username"] == "alice"


def test_update_me_rejects_password_change(client, user, user_headers) -> None:
    response = client.patch("/api/users/me", headers=user_headers, json={"password": "An0therPass!"})

    assert response.status_code == 400
    assert response.json()["details"]["fields"] == ["password"]


def test_update_me_rejects_unknown_and_empty(client, user, user_headers) -> None:
    unknown = client.patch("/api/users/me", headers=user_headers, json={"nickname": "al"})
    empty = client.patch("/api/users/me", headers=user_headers, json={})

    assert unknown.status_code == 400
    assert unknown.json()["message"] == "unknown_fields"
    assert empty.status_code == 400
    assert empty.json()["message"] == "no_changes"


def test_update_me_changes_profile(client, user, user_headers) -> None:
    response = client.patch(
        "/api/users/me",
        headers=user_headers,
        json={"username": "alice_new", "email": "Alice.New@example.com"},
    )

    assert response.status_code == 200
    assert response.json()["username"] == "alice_new"
    assert response.json()["email"] == "alice.new@example.com"


def test_update_me_email_collision(client, user, admin, user_headers) -> None:
    response = client.patch("/api/users/me", headers=user_headers, json={"email": "admin@example.com"})

    assert response.status_code == 400
    assert response.json()["error_code"] == "DUPLICATE_EMAIL"


def test_delete_me(client, user, user_headers) -> None:
    response = client.delete("/api/users/me", headers=user_headers)

    assert response.status_code == 204
    assert client.get("/api/auth/me", headers=user_headers).status_code == 401


def test_admin_routes_forbidden_until_promoted(client, user, admin_headers) -> None:
    login = client.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    user_token = login.json()["access_token"]

    denied = client.get("/api/users", headers=bearer(user_token))
    assert denied.status_code == 403
    assert denied.json()["message"] == "forbidden"

    promoted = client.patch(f"/api/users/{user.id}/role", headers=admin_headers, json={"role": "admin"})
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "admin"

    relogin = client.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    allowed = client.get("/api/users", headers=bearer(relogin.json()["access_token"]))
    assert allowed.status_code == 200


def test_admin_routes_require_authentication(client) -> None:
    assert client.get("/api/users").status_code == 401


def test_list_users_pagination(client, db_session, admin, admin_headers) -> None:
    for idx in range(4):
        create_user(db_session, username=f"member_{idx}", email=f"member{idx}@example.com", password=PASSWORD)

    response = client.get("/api/users", headers=admin_headers, params={"page": 2, "limit": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 5
    assert body["pages"] == 3
    assert body["page"] == 2
    assert len(body["items"]) == 2
    assert body["has_next"] is True
    assert body["has_prev"] is True


def test_list_users_rejects_bad_paging(client, admin, admin_headers) -> None:
    response = client.get("/api/users", headers=admin_headers, params={"limit": 1000})

    assert response.status_code == 400
    assert response.json()["details"]["errors"][0]["field"] == "limit"


def test_admin_get_user(client, user, admin_headers) -> None:
    found = client.get(f"/api/users/{user.id}", headers=admin_headers)
    missing = client.get(f"/api/users/{uuid.uuid4()}", headers=admin_headers)
    malformed = client.get("/api/users/not-a-uuid", headers=admin_headers)

    assert found.status_code == 200
    assert found.json()["email"] == "alice@example.com"
    assert missing.status_code == 404
    assert malformed.status_code == 404


def test_admin_update_user_rejects_protected_fields(client, user, admin_headers) -> None:
    response = client.patch(f"/api/users/{user.id}", headers=admin_headers, json={"is_active": False})

    assert response.status_code == 400
    assert response.json()["error_code"] == "PROTECTED_FIELD"


def test_admin_update_user_profile(client, user, admin_headers) -> None:
    response = client.patch(f"/api/users/{user.id}", headers=admin_headers, json={"username": "alice_admin_set"})

    assert response.status_code == 200
    assert response.json()["username"] == "alice_admin_set"


def test_admin_deactivates_user(client, user, user_headers, admin_headers) -> None:
    response = client.patch(f"/api/users/{user.id}/status", headers=admin_headers, json={"is_active": False})

    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert client.get("/api/auth/me", headers=user_headers).status_code == 401


def test_admin_rejects_unknown_role(client, user, admin_headers) -> None:
    response = client.patch(f"/api/users/{user.id}/role", headers=admin_headers, json={"role": "superuser"})

    assert response.status_code == 400


def test_admin_deletes_user(client, user, admin_headers) -> None:
    response = client.delete(f"/api/users/{user.id}", headers=admin_headers)

    assert response.status_code == 204
    assert client.get(f"/api/users/{user.id}", headers=admin_headers).status_code == 404


def test_admin_delete_missing_user(client, admin_headers) -> None:
    response = client.delete(f"/api/users/{uuid.uuid4()}", headers=admin_headers)

    assert response.status_code == 404
