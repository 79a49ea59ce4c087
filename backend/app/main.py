from __future__ import annotations

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import Settings, get_settings
from app.core.csrf import install_csrf_middleware
from app.core.handlers import install_exception_handlers
from app.core.logging import setup_logging
from app.core.rate_limit import SlidingWindowLimiter, install_global_rate_limit_middleware
from app.core.security import TokenService
from app.core.security_headers import install_security_headers_middleware
from app.db.session import build_engine, build_session_factory
from app.routers import auth, users

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)
    settings.validate_runtime_security()

    app = FastAPI(title=settings.APP_NAME)
    app.state.settings = settings
    app.state.token_service = TokenService.from_settings(settings)
    app.state.engine = build_engine(settings)
    app.state.session_factory = build_session_factory(app.state.engine)
    app.state.rate_limiter = SlidingWindowLimiter()

    # Innermost first: the last middleware added wraps all the others.
    install_csrf_middleware(app, settings)
    install_global_rate_limit_middleware(app)
    install_security_headers_middleware(app, settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", settings.CSRF_HEADER_NAME],
        expose_headers=["Content-Length", REQUEST_ID_HEADER],
        max_age=3600,
    )
    app.add_middleware(CorrelationIdMiddleware, header_name=REQUEST_ID_HEADER)

    install_exception_handlers(app)

    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])

    @app.get("/api/health", tags=["health"])
    def health_check() -> dict[str, str]:
        return {"status": "ok", "app": settings.APP_NAME}

    return app


app = create_app()
