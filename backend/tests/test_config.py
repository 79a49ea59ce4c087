from __future__ import annotations

import pytest

from app.core.exceptions import InvalidConfigurationError
from conftest import make_settings


def test_production_requires_non_default_secret() -> None:
    settings = make_settings(ENV="production", JWT_SECRET="change-me")

    with pytest.raises(InvalidConfigurationError):
        settings.validate_runtime_security()


def test_production_rejects_wildcard_cors() -> None:
    settings = make_settings(ENV="production", JWT_SECRET="prod-secret", CORS_ORIGINS="*")

    with pytest.raises(InvalidConfigurationError):
        settings.validate_runtime_security()


def test_non_production_allows_defaults() -> None:
    settings = make_settings(ENV="development", JWT_SECRET="change-me")

    settings.validate_runtime_security()
    assert settings.is_development


def test_list_settings_are_split_and_trimmed() -> None:
    settings = make_settings(CORS_ORIGINS=" https://a.example , https://b.example,", TRUSTED_IPS="10.0.0.1, 10.0.0.2")

    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.trusted_ips == {"10.0.0.1", "10.0.0.2"}
