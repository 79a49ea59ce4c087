"""Convenience imports for Alembic metadata discovery."""

from app.models.user import User  # noqa: F401
