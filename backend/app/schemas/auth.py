"""Auth-related schemas (token responses, refresh, password flows)."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.sanitize import clean_email, clean_single_line
from app.schemas.user import MAX_PASSWORD_LEN, NewPasswordMixin, UserOut


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserOut


class TokenRefreshRequest(BaseModel):
    refresh_token: str | None = None

    @field_validator("refresh_token", mode="before")
    @classmethod
    def normalize_refresh_token(cls, value: str | None) -> str | None:
        return clean_single_line(value) or None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return clean_email(value)


class ForgotPasswordResponse(BaseModel):
    status: str = "success"
    message: str
    reset_token: str


class ResetPasswordRequest(NewPasswordMixin):
    pass


class UpdatePasswordRequest(NewPasswordMixin):
    current_password: str = Field(min_length=1, max_length=MAX_PASSWORD_LEN)


class MessageResponse(BaseModel):
    status: str = "success"
    message: str
