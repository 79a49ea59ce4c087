"""Pydantic schemas for user payloads and responses."""

from __future__ import annotations

import datetime as dt
import re
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from app.core.sanitize import clean_email, clean_single_line, has_control_chars
from app.models.enums import UserRole

MIN_USERNAME_LEN = 4
MAX_USERNAME_LEN = 30
MIN_PASSWORD_LEN = 8
MAX_PASSWORD_LEN = 128

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")
PASSWORD_SPECIALS = "@$!%*?&"


def validate_username(value: str) -> str:
    if not USERNAME_RE.fullmatch(value):
        raise ValueError("username_invalid_characters")
    return value


def validate_password_strength(value: str) -> str:
    if has_control_chars(value):
        raise ValueError("password_contains_control_chars")
    if not (
        any(ch.islower() for ch in value)
        and any(ch.isupper() for ch in value)
        and any(ch.isdigit() for ch in value)
        and any(ch in PASSWORD_SPECIALS for ch in value)
    ):
        raise ValueError("password_too_weak")
    return value


class NewPasswordMixin(BaseModel):
    password: str = Field(min_length=MIN_PASSWORD_LEN, max_length=MAX_PASSWORD_LEN)
    password_confirm: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return validate_password_strength(value)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.password_confirm:
            raise ValueError("password_confirmation_mismatch")
        return self


class UserCreate(NewPasswordMixin):
    username: str = Field(min_length=MIN_USERNAME_LEN, max_length=MAX_USERNAME_LEN)
    email: EmailStr

    @field_validator("username", mode="before")
    @classmethod
    def normalize_username(cls, value: str) -> str:
        return clean_single_line(value)

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str) -> str:
        return validate_username(value)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_LEN)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)


class UserUpdate(BaseModel):
    """Generic profile update; unknown keys are kept so the router can reject them."""

    model_config = ConfigDict(extra="allow")

    username: str | None = Field(default=None, min_length=MIN_USERNAME_LEN, max_length=MAX_USERNAME_LEN)
    email: EmailStr | None = None

    @field_validator("username", mode="before")
    @classmethod
    def normalize_username(cls, value: str | None) -> str | None:
        return None if value is None else clean_single_line(value)

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str | None) -> str | None:
        return None if value is None else validate_username(value)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        return None if value is None else clean_email(value)


class UserOut(BaseModel):
    id: UUID
    username: str
    email: EmailStr
    role: UserRole
    is_active: bool
    created_at: dt.datetime

    class Config:
        from_attributes = True


class UserRoleUpdate(BaseModel):
    role: UserRole


class UserStatusUpdate(BaseModel):
    is_active: bool


class UserPage(BaseModel):
    items: list[UserOut]
    total: int
    page: int
    limit: int
    pages: int
    has_next: bool
    has_prev: bool
