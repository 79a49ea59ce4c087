"""Exception handlers that render every failure in one JSON envelope."""

from __future__ import annotations

import logging
import traceback
from typing import Any

from asgi_correlation_id import correlation_id
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import SecureCrudException, ValidationException

logger = logging.getLogger(__name__)

_VALUE_ERROR_PREFIX = "Value error, "


def _envelope(content: dict[str, Any]) -> dict[str, Any]:
    content["request_id"] = correlation_id.get()
    return content


def error_response(exc: SecureCrudException) -> JSONResponse:
    headers = exc.headers if getattr(exc, "headers", None) else None
    return JSONResponse(status_code=exc.status_code, content=_envelope(exc.to_dict()), headers=headers)


def _field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    errors: list[dict[str, str]] = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        message = str(err.get("msg", "invalid"))
        if message.startswith(_VALUE_ERROR_PREFIX):
            message = message[len(_VALUE_ERROR_PREFIX):]
        errors.append({"field": ".".join(loc) or "body", "message": message})
    return errors


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SecureCrudException)
    async def handle_app_exception(_: Request, exc: SecureCrudException) -> JSONResponse:
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(ValidationException(_field_errors(exc)))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        error_code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        content = _envelope(
            {
                "status": "error",
                "error": "HTTPException",
                "message": str(exc.detail),
                "error_code": error_code,
                "details": {},
            }
        )
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        request_id = correlation_id.get()
        logger.exception("Unhandled error [%s] %s %s", request_id, request.method, request.url.path)
        details: dict[str, Any] = {}
        if request.app.state.settings.is_development:
            details["exception"] = repr(exc)
            details["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        content = _envelope(
            {
                "status": "error",
                "error": "InternalServerError",
                "message": "internal_server_error",
                "error_code": "INTERNAL_ERROR",
                "details": details,
            }
        )
        return JSONResponse(status_code=500, content=content)
