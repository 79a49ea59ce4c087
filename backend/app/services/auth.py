"""Service helpers for login, token issuance and session resolution."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.core.exceptions import InactiveUserError, StaleSessionError
from app.core.security import TokenService, as_utc, dummy_verify
from app.models.user import User
from app.services.users import correct_password, find_user_by_email, get_user

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthTokens:
    access_token: str
    refresh_token: str
    user: User


def issue_auth_tokens(token_service: TokenService, user: User) -> AuthTokens:
    return AuthTokens(
        access_token=token_service.issue_access_token(user.id),
        refresh_token=token_service.issue_refresh_token(user.id),
        user=user,
    )


def is_token_stale(issued_at: int, password_changed_at: dt.datetime | None) -> bool:
    """True when a token was issued before the user's last password change.

    Both sides are compared in whole epoch seconds, so a token minted in the
    same second as the change is still accepted.
    """
    if password_changed_at is None:
        return False
    changed_ts = int(as_utc(password_changed_at).timestamp())
    return issued_at < changed_ts


def resolve_session_user(db: Session, token_service: TokenService, token: str, *, kind: str) -> User:
    """Verify ``token`` and return its active, non-stale subject.

    Raises the token's own ``InvalidTokenError``/``ExpiredTokenError``, or
    ``InactiveUserError``/``StaleSessionError`` once the user is loaded.
    """
    claims = token_service.verify(token, expected_kind=kind)

    user = get_user(db, claims.subject, active_only=True)
    if user is None:
        raise InactiveUserError()

    if is_token_stale(claims.issued_at, user.password_changed_at):
        logger.info("Rejected %s token issued before password change: %s", kind, user.email)
        raise StaleSessionError()
    return user


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    user = find_user_by_email(db, email)
    if not user:
        dummy_verify()
        logger.warning("Login failed: user not found (%s)", email)
        return None
    if not correct_password(password, user.password_hash):
        logger.warning("Login failed: invalid password (%s)", email)
        return None
    if not user.is_active:
        logger.warning("Login failed: inactive account (%s)", email)
        return None
    logger.info("User authenticated: %s", user.email)
    return user
