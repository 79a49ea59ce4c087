"""Authentication endpoints (register, login, refresh, password flows, logout)."""

from __future__ import annotations

import datetime as dt
import logging

from fastapi import APIRouter, Body, Depends, Request, Response, status
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.deps import get_app_settings, get_current_user, get_token_service
from app.core.exceptions import (
    ExpiredTokenError,
    IncorrectPasswordError,
    InvalidCredentialsError,
    InvalidResetTokenError,
    InvalidTokenError,
    NotAuthenticatedError,
    NotFoundError,
)
from app.core.rate_limit import rate_limit
from app.core.security import REFRESH_TOKEN_TYPE, TokenService
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import (
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    MessageResponse,
    ResetPasswordRequest,
    TokenRefreshRequest,
    TokenResponse,
    UpdatePasswordRequest,
)
from app.schemas.user import UserCreate, UserLogin, UserOut
from app.services.auth import AuthTokens, authenticate_user, issue_auth_tokens, resolve_session_user
from app.services.users import (
    change_password,
    correct_password,
    create_password_reset_token,
    create_user,
    find_user_by_email,
    find_user_by_reset_token,
    reset_password,
)

router = APIRouter(dependencies=[Depends(rate_limit("auth"))])
logger = logging.getLogger(__name__)

REFRESH_COOKIE_PATH = "/api/auth"


def _set_auth_cookies(response: Response, settings: Settings, tokens: AuthTokens) -> None:
    response.set_cookie(
        settings.COOKIE_NAME,
        tokens.access_token,
        httponly=True,
        samesite=settings.COOKIE_SAMESITE,
        secure=settings.is_production,
        path="/",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        tokens.refresh_token,
        httponly=True,
        samesite=settings.COOKIE_SAMESITE,
        secure=settings.is_production,
        path=REFRESH_COOKIE_PATH,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


def _clear_auth_cookies(response: Response, settings: Settings) -> None:
    response.delete_cookie(settings.COOKIE_NAME, path="/")
    response.delete_cookie(settings.REFRESH_COOKIE_NAME, path=REFRESH_COOKIE_PATH)


def _send_tokens(response: Response, settings: Settings, token_service: TokenService, user: User) -> TokenResponse:
    tokens = issue_auth_tokens(token_service, user)
    _set_auth_cookies(response, settings, tokens)
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        user=UserOut.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register_user(
    payload: UserCreate,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    token_service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    user = create_user(db, username=payload.username, email=payload.email, password=payload.password)
    return _send_tokens(response, settings, token_service, user)


@router.post("/login", response_model=TokenResponse)
def login_user(
    payload: UserLogin,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    token_service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    user = authenticate_user(db, payload.email, payload.password)
    if not user:
        raise InvalidCredentialsError()
    return _send_tokens(response, settings, token_service, user)


@router.post("/refresh-token", response_model=TokenResponse)
def refresh_session(
    request: Request,
    response: Response,
    payload: TokenRefreshRequest | None = Body(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    token_service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    refresh_token = request.cookies.get(settings.REFRESH_COOKIE_NAME) or (payload.refresh_token if payload else None)
    if not refresh_token:
        raise NotAuthenticatedError("refresh_token_missing")

    try:
        user = resolve_session_user(db, token_service, refresh_token, kind=REFRESH_TOKEN_TYPE)
    except ExpiredTokenError:
        raise ExpiredTokenError("refresh_token_expired")
    except InvalidTokenError:
        raise InvalidTokenError("invalid_refresh_token")

    return _send_tokens(response, settings, token_service, user)


@router.post("/forgot-password", response_model=ForgotPasswordResponse)
def forgot_password(
    payload: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> ForgotPasswordResponse:
    user = find_user_by_email(db, payload.email)
    if not user:
        raise NotFoundError("user_not_found", details={"email": payload.email})

    token = create_password_reset_token(
        db,
        user,
        expires_in=dt.timedelta(minutes=settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES),
    )
    # Delivery (email) is outside this service; the caller receives the token directly.
    return ForgotPasswordResponse(message="reset_token_issued", reset_token=token)


@router.post("/reset-password/{token}", response_model=TokenResponse)
def reset_password_with_token(
    token: str,
    payload: ResetPasswordRequest,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    token_service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    user = find_user_by_reset_token(db, token)
    if not user:
        logger.warning("Password reset failed: invalid or expired token")
        raise InvalidResetTokenError()

    user = reset_password(db, user, payload.password)
    return _send_tokens(response, settings, token_service, user)


@router.post("/update-password", response_model=TokenResponse)
def update_password(
    payload: UpdatePasswordRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    token_service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    if not correct_password(payload.current_password, current_user.password_hash):
        logger.warning("Password update failed: wrong current password (%s)", current_user.email)
        raise IncorrectPasswordError()

    user = change_password(db, current_user, payload.password)
    return _send_tokens(response, settings, token_service, user)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.model_validate(current_user)


@router.post("/logout", response_model=MessageResponse)
def logout_user(
    response: Response,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
) -> MessageResponse:
    # Stateless: issued tokens stay valid until expiry; only the client copies are dropped.
    _clear_auth_cookies(response, settings)
    logger.info("User logged out: %s", current_user.email)
    return MessageResponse(message="logged_out")
