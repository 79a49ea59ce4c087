"""Custom exceptions for application-specific error handling."""

from __future__ import annotations

from typing import Optional, Dict, Any


class SecureCrudException(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "status": "error",
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class NotFoundError(SecureCrudException):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "not_found", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="NOT_FOUND", details=details, status_code=404)


class BadRequestError(SecureCrudException):
    """Raised when request is invalid."""

    def __init__(self, message: str = "bad_request", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="BAD_REQUEST", details=details, status_code=400)


class RateLimitExceeded(SecureCrudException):
    """Raised when a client exceeds rate limits."""

    def __init__(self, *, retry_after: int, limit: int, window_seconds: int):
        headers = {
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Window": str(window_seconds),
        }
        super().__init__(
            "rate_limit_exceeded",
            error_code="RATE_LIMIT",
            details={"retry_after": retry_after, "limit": limit, "window_seconds": window_seconds},
            status_code=429,
            headers=headers,
        )


class CsrfError(SecureCrudException):
    """Raised when a cookie-authenticated write lacks a matching CSRF token."""

    def __init__(self, message: str = "csrf_token_invalid"):
        super().__init__(message, error_code="CSRF_FAILED", status_code=403)


# ===== VALIDATION EXCEPTIONS =====


class ValidationException(SecureCrudException):
    """Raised when request payload validation fails."""

    def __init__(self, errors: list[Dict[str, str]], message: str = "validation_error"):
        super().__init__(message, error_code="VALIDATION_ERROR", details={"errors": errors}, status_code=400)


class DuplicateEmailError(SecureCrudException):
    """Raised when an email address is already registered."""

    def __init__(self, email: str):
        super().__init__("email_already_in_use", error_code="DUPLICATE_EMAIL", details={"email": email}, status_code=400)


class ProtectedFieldError(SecureCrudException):
    """Raised when a generic update tries to touch password, role or status."""

    def __init__(self, fields: list[str]):
        super().__init__(
            "protected_fields_not_updatable",
            error_code="PROTECTED_FIELD",
            details={"fields": fields},
            status_code=400,
        )


class InvalidResetTokenError(SecureCrudException):
    """Raised when a password reset token is unknown, used or expired."""

    def __init__(self, message: str = "invalid_or_expired_reset_token"):
        super().__init__(message, error_code="INVALID_RESET_TOKEN", status_code=400)


class InvalidConfigurationError(SecureCrudException):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, setting: Optional[str] = None):
        details = {"setting": setting} if setting else {}
        super().__init__(message, error_code="INVALID_CONFIG", details=details, status_code=500)


# ===== AUTHENTICATION/AUTHORIZATION EXCEPTIONS =====


class AuthenticationException(SecureCrudException):
    """Base exception for authentication errors."""

    def __init__(self, message: str = "not_authenticated", *, error_code: str = "NOT_AUTHENTICATED", status_code: int = 401):
        super().__init__(message, error_code=error_code, status_code=status_code)


class NotAuthenticatedError(AuthenticationException):
    """Raised when no credential was presented."""

    def __init__(self, message: str = "not_authenticated"):
        super().__init__(message, error_code="NOT_AUTHENTICATED")


class InvalidTokenError(AuthenticationException):
    """Raised when a token fails signature, structure or kind checks."""

    def __init__(self, message: str = "invalid_token"):
        super().__init__(message, error_code="INVALID_TOKEN")


class ExpiredTokenError(AuthenticationException):
    """Raised when token has expired."""

    def __init__(self, message: str = "token_expired"):
        super().__init__(message, error_code="EXPIRED_TOKEN")


class StaleSessionError(AuthenticationException):
    """Raised when a token predates the user's last password change."""

    def __init__(self, message: str = "password_changed_reauthenticate"):
        super().__init__(message, error_code="STALE_SESSION")


class InactiveUserError(AuthenticationException):
    """Raised when the token subject is missing or deactivated."""

    def __init__(self, message: str = "user_no_longer_exists"):
        super().__init__(message, error_code="USER_NOT_FOUND")


class InvalidCredentialsError(AuthenticationException):
    """Raised on login failure without saying which credential was wrong."""

    def __init__(self, message: str = "invalid_credentials"):
        super().__init__(message, error_code="INVALID_CREDENTIALS")


class IncorrectPasswordError(AuthenticationException):
    """Raised when the current password does not match on password update."""

    def __init__(self, message: str = "incorrect_current_password"):
        super().__init__(message, error_code="INCORRECT_PASSWORD")


class InsufficientPermissionsError(SecureCrudException):
    """Raised when user lacks required permissions."""

    def __init__(self, message: str = "forbidden"):
        super().__init__(message, error_code="INSUFFICIENT_PERMISSIONS", status_code=403)
