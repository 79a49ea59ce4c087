"""Common FastAPI dependencies for authentication and authorization."""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.exceptions import InsufficientPermissionsError, NotAuthenticatedError
from app.core.security import ACCESS_TOKEN_TYPE, TokenService
from app.db.session import get_db
from app.models.enums import UserRole
from app.models.user import User
from app.services.auth import resolve_session_user


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def extract_bearer_token(request: Request) -> str | None:
    authorization = request.headers.get("Authorization", "")
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    cleaned = token.strip()
    return cleaned or None


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    token_service: TokenService = Depends(get_token_service),
) -> User:
    token = extract_bearer_token(request) or request.cookies.get(settings.COOKIE_NAME)
    if not token:
        raise NotAuthenticatedError()

    user = resolve_session_user(db, token_service, token, kind=ACCESS_TOKEN_TYPE)
    request.state.user = user
    return user


def require_roles(*required: UserRole):
    allowed = set(required)

    def _checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise InsufficientPermissionsError("forbidden")
        return user

    return _checker


require_admin = require_roles(UserRole.admin)
