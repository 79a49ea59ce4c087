"""Application configuration loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.exceptions import InvalidConfigurationError

BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_JWT_SECRET = "change-me"


class Settings(BaseSettings):
    APP_NAME: str = "Secure CRUD API"
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./secure_crud.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 0
    DB_POOL_TIMEOUT: int = 30

    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    COOKIE_NAME: str = "jwt"
    REFRESH_COOKIE_NAME: str = "refresh_token"
    COOKIE_SAMESITE: str = "strict"

    PASSWORD_RESET_TOKEN_EXPIRE_MINUTES: int = 10

    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    CSRF_ENABLED: bool = True
    CSRF_COOKIE_NAME: str = "XSRF-TOKEN"
    CSRF_HEADER_NAME: str = "X-CSRF-Token"

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_AUTH_WINDOW_SECONDS: int = 60
    RATE_LIMIT_AUTH_MAX_REQUESTS: int = 5
    RATE_LIMIT_USER_ACTION_WINDOW_SECONDS: int = 5 * 60
    RATE_LIMIT_USER_ACTION_MAX_REQUESTS: int = 10
    TRUSTED_IPS: str = ""
    TRUSTED_PROXIES: str = ""

    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENV.lower() == "development"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def trusted_ips(self) -> set[str]:
        return {ip.strip() for ip in self.TRUSTED_IPS.split(",") if ip.strip()}

    @property
    def trusted_proxies(self) -> set[str]:
        return {ip.strip() for ip in self.TRUSTED_PROXIES.split(",") if ip.strip()}

    def validate_runtime_security(self) -> None:
        if not self.is_production:
            return
        if not self.JWT_SECRET or self.JWT_SECRET == DEFAULT_JWT_SECRET:
            raise InvalidConfigurationError("JWT_SECRET must be set in production", setting="JWT_SECRET")
        if "*" in self.cors_origins:
            raise InvalidConfigurationError("Wildcard CORS origins are not allowed with credentials", setting="CORS_ORIGINS")


@lru_cache
def get_settings() -> Settings:
    return Settings()
