from __future__ import annotations

import sys
from pathlib import Path

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from fastapi.testclient import TestClient  # noqa: E402

from app.core.config import Settings  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import create_app  # noqa: E402
from app.models.enums import UserRole  # noqa: E402
from app.services.users import create_user  # noqa: E402

PASSWORD = "Passw0rd!"
NEW_PASSWORD = "N3wPassw0rd?"


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "sqlite://",
        "ENV": "test",
        "JWT_SECRET": "test-secret",
        "RATE_LIMIT_ENABLED": False,
        "CSRF_ENABLED": False,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def app_factory():
    created = []

    def _build(**overrides):
        application = create_app(make_settings(**overrides))
        Base.metadata.create_all(bind=application.state.engine)
        created.append(application)
        return application

    yield _build

    for application in created:
        Base.metadata.drop_all(bind=application.state.engine)
        application.state.engine.dispose()


@pytest.fixture
def app(app_factory):
    return app_factory()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def token_service(app):
    return app.state.token_service


@pytest.fixture
def user(db_session):
    return create_user(db_session, username="alice", email="alice@example.com", password=PASSWORD)


@pytest.fixture
def admin(db_session):
    return create_user(
        db_session,
        username="root_admin",
        email="admin@example.com",
        password=PASSWORD,
        role=UserRole.admin,
    )


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(user, token_service) -> dict[str, str]:
    return bearer(token_service.issue_access_token(user.id))


@pytest.fixture
def admin_headers(admin, token_service) -> dict[str, str]:
    return bearer(token_service.issue_access_token(admin.id))
