"""Self-service and admin endpoints for user management."""

from __future__ import annotations

import math
from typing import Any

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.deps import get_current_user, require_admin
from app.core.exceptions import BadRequestError, NotFoundError, ProtectedFieldError
from app.core.rate_limit import rate_limit
from app.db.session import get_db
from app.models.user import User
from app.schemas.user import UserOut, UserPage, UserRoleUpdate, UserStatusUpdate, UserUpdate
from app.services.users import (
    PROTECTED_USER_FIELDS,
    UPDATABLE_USER_FIELDS,
    delete_user,
    get_user,
    list_users,
    update_active_status,
    update_role,
    update_user,
)

router = APIRouter()


def _extract_changes(payload: UserUpdate) -> dict[str, Any]:
    extra = set(payload.model_extra or {})
    protected = sorted(extra & PROTECTED_USER_FIELDS)
    if protected:
        raise ProtectedFieldError(protected)
    unknown = sorted(extra - PROTECTED_USER_FIELDS)
    if unknown:
        raise BadRequestError("unknown_fields", details={"fields": unknown})

    changes = payload.model_dump(include=set(UPDATABLE_USER_FIELDS), exclude_none=True)
    if not changes:
        raise BadRequestError("no_changes")
    return changes


def _get_user_or_404(db: Session, user_id: str) -> User:
    user = get_user(db, user_id)
    if not user:
        raise NotFoundError("user_not_found", details={"user_id": user_id})
    return user


@router.patch("/me", response_model=UserOut, dependencies=[Depends(rate_limit("user_action"))])
def update_me(
    payload: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserOut:
    changes = _extract_changes(payload)
    return UserOut.model_validate(update_user(db, current_user, changes))


@router.delete(
    "/me",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    response_model=None,
    dependencies=[Depends(rate_limit("user_action"))],
)
def delete_me(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Response:
    delete_user(db, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("", response_model=UserPage, dependencies=[Depends(require_admin)])
def get_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
) -> UserPage:
    items, total = list_users(db, page=page, limit=limit)
    pages = math.ceil(total / limit) if total else 0
    return UserPage(
        items=[UserOut.model_validate(u) for u in items],
        total=total,
        page=page,
        limit=limit,
        pages=pages,
        has_next=page < pages,
        has_prev=page > 1,
    )


@router.get("/{user_id}", response_model=UserOut, dependencies=[Depends(require_admin)])
def get_user_by_id(user_id: str, db: Session = Depends(get_db)) -> UserOut:
    return UserOut.model_validate(_get_user_or_404(db, user_id))


@router.patch("/{user_id}", response_model=UserOut, dependencies=[Depends(require_admin)])
def update_user_by_id(user_id: str, payload: UserUpdate, db: Session = Depends(get_db)) -> UserOut:
    changes = _extract_changes(payload)
    user = _get_user_or_404(db, user_id)
    return UserOut.model_validate(update_user(db, user, changes))


@router.patch("/{user_id}/role", response_model=UserOut, dependencies=[Depends(require_admin)])
def set_role(user_id: str, payload: UserRoleUpdate, db: Session = Depends(get_db)) -> UserOut:
    user = _get_user_or_404(db, user_id)
    return UserOut.model_validate(update_role(db, user, payload.role))


@router.patch("/{user_id}/status", response_model=UserOut, dependencies=[Depends(require_admin)])
def set_status(user_id: str, payload: UserStatusUpdate, db: Session = Depends(get_db)) -> UserOut:
    user = _get_user_or_404(db, user_id)
    return UserOut.model_validate(update_active_status(db, user, payload.is_active))


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    response_model=None,
    dependencies=[Depends(require_admin)],
)
def remove_user(user_id: str, db: Session = Depends(get_db)) -> Response:
    delete_user(db, _get_user_or_404(db, user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
