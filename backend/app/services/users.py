"""Credential store: persistence and password/reset-token handling for users."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import DuplicateEmailError
from app.core.security import generate_reset_token, hash_password, hash_reset_token, utcnow, verify_password
from app.models.enums import UserRole
from app.models.user import User

logger = logging.getLogger(__name__)

# Fields the generic update paths may write. Everything else has a dedicated operation.
UPDATABLE_USER_FIELDS = frozenset({"username", "email"})
PROTECTED_USER_FIELDS = frozenset({"password", "role", "is_active"})

DEFAULT_RESET_TOKEN_TTL = dt.timedelta(minutes=10)


def _parse_user_id(user_id: str | UUID) -> UUID | None:
    if isinstance(user_id, UUID):
        return user_id
    try:
        return UUID(str(user_id))
    except ValueError:
        return None


def get_user(db: Session, user_id: str | UUID, *, active_only: bool = False) -> User | None:
    user_uuid = _parse_user_id(user_id)
    if user_uuid is None:
        return None
    user = db.get(User, user_uuid)
    if user is None or (active_only and not user.is_active):
        return None
    return user


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def create_user(
    db: Session,
    *,
    username: str,
    email: str,
    password: str,
    role: UserRole = UserRole.user,
) -> User:
    normalized_email = email.strip().lower()
    # Fast path only; the unique index on users.email is what actually guarantees it.
    if find_user_by_email(db, normalized_email):
        raise DuplicateEmailError(normalized_email)

    user = User(
        username=username.strip(),
        email=normalized_email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("User create lost email race: %s", normalized_email)
        raise DuplicateEmailError(normalized_email) from exc
    db.refresh(user)
    logger.info("User created: %s", user.email)
    return user


def correct_password(candidate: str, stored_hash: str) -> bool:
    return verify_password(candidate, stored_hash)


def list_users(db: Session, *, page: int = 1, limit: int = 10) -> tuple[list[User], int]:
    total = db.scalar(select(func.count()).select_from(User)) or 0
    items = (
        db.query(User)
        .order_by(User.created_at.desc(), User.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def update_user(db: Session, user: User, changes: dict[str, Any]) -> User:
    allowed = {key: value for key, value in changes.items() if key in UPDATABLE_USER_FIELDS}
    if "email" in allowed:
        allowed["email"] = allowed["email"].strip().lower()
        existing = find_user_by_email(db, allowed["email"])
        if existing and existing.id != user.id:
            raise DuplicateEmailError(allowed["email"])
    if "username" in allowed:
        allowed["username"] = allowed["username"].strip()

    for key, value in allowed.items():
        setattr(user, key, value)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateEmailError(allowed.get("email", user.email)) from exc
    db.refresh(user)
    logger.info("User updated: %s (%s)", user.email, ", ".join(sorted(allowed)))
    return user


def update_role(db: Session, user: User, role: UserRole) -> User:
    user.role = role
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User role updated: %s -> %s", user.email, role.value)
    return user


def update_active_status(db: Session, user: User, is_active: bool) -> User:
    user.is_active = is_active
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User active status updated: %s -> %s", user.email, is_active)
    return user


def delete_user(db: Session, user: User) -> None:
    email = user.email
    db.delete(user)
    db.commit()
    logger.info("User deleted: %s", email)


def create_password_reset_token(
    db: Session,
    user: User,
    *,
    expires_in: dt.timedelta = DEFAULT_RESET_TOKEN_TTL,
) -> str:
    """Issue a reset token and return its plaintext; only the digest is stored.

    A new call overwrites any previously issued token for the user.
    """
    token, digest = generate_reset_token()
    user.password_reset_token = digest
    user.password_reset_expires = utcnow() + expires_in
    db.add(user)
    db.commit()
    logger.info("Password reset token issued: %s", user.email)
    return token


def find_user_by_reset_token(db: Session, token: str) -> User | None:
    """Resolve an unexpired reset token. Unknown and expired tokens look the same."""
    digest = hash_reset_token(token)
    return (
        db.query(User)
        .filter(User.password_reset_token == digest, User.password_reset_expires > utcnow())
        .first()
    )


def reset_password(db: Session, user: User, new_password: str) -> User:
    user.password_hash = hash_password(new_password)
    user.password_reset_token = None
    user.password_reset_expires = None
    user.password_changed_at = utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Password reset success: %s", user.email)
    return user


def change_password(db: Session, user: User, new_password: str) -> User:
    user.password_hash = hash_password(new_password)
    user.password_changed_at = utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Password changed: %s", user.email)
    return user
