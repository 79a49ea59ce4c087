"""Security helpers for hashing passwords, reset tokens and issuing JWTs."""

from __future__ import annotations

import datetime as dt
import hashlib
import secrets
from dataclasses import dataclass
from typing import Any, Callable

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.core.config import Settings
from app.core.exceptions import ExpiredTokenError, InvalidTokenError

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"
RESET_TOKEN_BYTES = 32

Clock = Callable[[], dt.datetime]


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def as_utc(value: dt.datetime) -> dt.datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(password, hashed)
    except ValueError:
        return False


def dummy_verify() -> None:
    """Burn the same time as a real verify so unknown emails are not detectable."""
    pwd_context.dummy_verify()


def generate_reset_token() -> tuple[str, str]:
    """Return ``(plaintext, digest)``. Only the digest may be persisted."""
    token = secrets.token_hex(RESET_TOKEN_BYTES)
    return token, hash_reset_token(token)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    issued_at: int
    expires_at: int
    kind: str


class TokenService:
    """Issues and verifies stateless access and refresh tokens."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        access_ttl: dt.timedelta = dt.timedelta(days=1),
        refresh_ttl: dt.timedelta = dt.timedelta(days=7),
        clock: Clock = utcnow,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, *, clock: Clock = utcnow) -> "TokenService":
        return cls(
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            access_ttl=dt.timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=dt.timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
            clock=clock,
        )

    def _create_token(self, subject: Any, *, expires_delta: dt.timedelta, token_type: str) -> str:
        now = self._clock()
        issued_at = int(now.timestamp())
        payload = {
            "sub": str(subject),
            "iat": issued_at,
            "exp": int((now + expires_delta).timestamp()),
            "type": token_type,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def issue_access_token(self, user_id: Any) -> str:
        return self._create_token(user_id, expires_delta=self.access_ttl, token_type=ACCESS_TOKEN_TYPE)

    def issue_refresh_token(self, user_id: Any) -> str:
        return self._create_token(user_id, expires_delta=self.refresh_ttl, token_type=REFRESH_TOKEN_TYPE)

    def verify(self, token: str, *, expected_kind: str | None = None) -> TokenClaims:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError as exc:
            raise ExpiredTokenError() from exc
        except JWTError as exc:
            raise InvalidTokenError() from exc

        subject = payload.get("sub")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")
        kind = payload.get("type")
        if not subject or not isinstance(issued_at, int) or not isinstance(expires_at, int):
            raise InvalidTokenError()
        if kind not in (ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE):
            raise InvalidTokenError()
        if expected_kind is not None and kind != expected_kind:
            raise InvalidTokenError()
        return TokenClaims(subject=subject, issued_at=issued_at, expires_at=expires_at, kind=kind)
