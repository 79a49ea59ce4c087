"""Double-submit cookie CSRF protection for cookie-authenticated requests."""

from __future__ import annotations

import secrets

from fastapi import FastAPI, Request

from app.core.config import Settings
from app.core.exceptions import CsrfError
from app.core.handlers import error_response

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})


def new_csrf_token() -> str:
    return secrets.token_urlsafe(32)


def requires_csrf_check(request: Request, settings: Settings) -> bool:
    """Only writes that authenticate via cookies can be forged cross-site."""
    if request.method in SAFE_METHODS:
        return False
    if request.headers.get("Authorization", "").lower().startswith("bearer "):
        return False
    return bool(request.cookies.get(settings.COOKIE_NAME) or request.cookies.get(settings.REFRESH_COOKIE_NAME))


def install_csrf_middleware(app: FastAPI, settings: Settings) -> None:
    @app.middleware("http")
    async def csrf_protect(request: Request, call_next):  # type: ignore[override]
        if not settings.CSRF_ENABLED:
            return await call_next(request)

        cookie_token = request.cookies.get(settings.CSRF_COOKIE_NAME)
        if requires_csrf_check(request, settings):
            header_token = request.headers.get(settings.CSRF_HEADER_NAME)
            if not cookie_token or not header_token or not secrets.compare_digest(cookie_token, header_token):
                return error_response(CsrfError())

        response = await call_next(request)
        if not cookie_token:
            # Readable by JS so the client can echo it back in the header.
            response.set_cookie(
                settings.CSRF_COOKIE_NAME,
                new_csrf_token(),
                httponly=False,
                samesite=settings.COOKIE_SAMESITE,
                secure=settings.is_production,
                path="/",
            )
        return response
