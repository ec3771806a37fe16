"""Password hashing and session-token issuance/validation."""

import logging
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cadence.core.config import ALLOWED_JWT_ALGORITHMS

logger = logging.getLogger(__name__)

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12
# bcrypt ignores input beyond 72 bytes; newer releases raise instead.
BCRYPT_MAX_BYTES = 72

# Min/max lengths for username and password validation.
USERNAME_MIN_LEN = 1
USERNAME_MAX_LEN = 255
EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

SESSION_TOKEN_TTL = timedelta(days=7)

REQUIRED_CLAIMS = ("user_id", "username", "is_admin", "iat", "exp")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class PasswordHasher:
    """Salted, cost-factored password hashing backed by bcrypt."""

    def __init__(self, rounds: int = BCRYPT_ROUNDS) -> None:
        if rounds < 4 or rounds > 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self.rounds = rounds
        # Verified against when the account does not exist, so that path costs a full check.
        self._dummy_hash = self.hash(secrets.token_urlsafe(16))

    @staticmethod
    def _encode(plain_password: str) -> bytes:
        return plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]

    def hash(self, plain_password: str) -> str:
        """Hash a plain-text password for storage. Do not store plain passwords."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(self._encode(plain_password), salt).decode("utf-8")

    def verify(self, plain_password: str, hashed: str) -> bool:
        """Verify a plain password against a stored hash; malformed hashes never match."""
        try:
            return bcrypt.checkpw(self._encode(plain_password), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def verify_dummy(self, plain_password: str) -> bool:
        """Spend one verification without an account; always False."""
        self.verify(plain_password, self._dummy_hash)
        return False


class TokenError(Exception):
    """Base for session-token validation failures."""


class InvalidTokenSignature(TokenError):
    """Signature does not verify, or the token uses an unexpected algorithm."""


class MalformedToken(TokenError):
    """Token cannot be decoded or its claims do not match the expected shape."""


class TokenExpired(TokenError):
    """Signature verified but the token is past ``exp``; carries the subject for auditing."""

    def __init__(self, message: str, username: str | None = None) -> None:
        super().__init__(message)
        self.username = username


class SessionClaims(BaseModel):
    """Typed claims carried by a session token."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    user_id: int
    username: str = Field(min_length=1)
    is_admin: bool
    issued_at: int = Field(alias="iat")
    expires_at: int = Field(alias="exp")

    @field_validator("user_id", mode="before")
    @classmethod
    def coerce_user_id(cls, v: Any) -> int:
        # JSON numbers may arrive as floats; only integral values are identities.
        if isinstance(v, bool):
            raise ValueError("user_id must be a number")
        if isinstance(v, float):
            if not v.is_integer():
                raise ValueError("user_id must be integral")
            return int(v)
        if not isinstance(v, int):
            raise ValueError("user_id must be a number")
        return v

    @field_validator("is_admin", mode="before")
    @classmethod
    def require_bool(cls, v: Any) -> bool:
        if not isinstance(v, bool):
            raise ValueError("is_admin must be a boolean")
        return v

    @field_validator("issued_at", "expires_at", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> int:
        if isinstance(v, bool) or not isinstance(v, int | float):
            raise ValueError("timestamp must be numeric")
        return int(v)


class TokenService:
    """
    Issues and validates HMAC-signed session tokens.

    Only the configured algorithm is accepted. Expiry is checked against the
    injected clock rather than the library's wall clock, so validation is
    deterministic for a given clock reading.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl: timedelta = SESSION_TOKEN_TTL,
        clock: Clock = utc_now,
    ) -> None:
        if not secret:
            raise ValueError("token secret must be non-empty")
        if algorithm not in ALLOWED_JWT_ALGORITHMS:
            raise ValueError(f"unsupported token algorithm: {algorithm}")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl = ttl
        self._clock = clock

    def issue(self, user_id: int, username: str, is_admin: bool) -> str:
        """Create a signed token with identity and role claims, valid for ``ttl``."""
        now = self._clock()
        issued_at = int(now.timestamp())
        payload: dict[str, Any] = {
            "user_id": user_id,
            "username": username,
            "is_admin": bool(is_admin),
            "iat": issued_at,
            "exp": issued_at + int(self.ttl.total_seconds()),
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def validate(self, token: str) -> SessionClaims:
        """
        Verify signature and expiry; return typed claims.
        Raises InvalidTokenSignature, MalformedToken or TokenExpired.
        """
        if not token or not isinstance(token, str):
            raise MalformedToken("empty token")
        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as e:
            raise MalformedToken("token header cannot be decoded") from e
        if header.get("alg") != self.algorithm:
            raise InvalidTokenSignature("unexpected signing algorithm")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={
                    "require": list(REQUIRED_CLAIMS),
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as e:
            raise InvalidTokenSignature("signature verification failed") from e
        except jwt.PyJWTError as e:
            raise MalformedToken("token cannot be decoded") from e

        try:
            claims = SessionClaims.model_validate(payload)
        except ValidationError as e:
            raise MalformedToken("token claims are invalid") from e

        if int(self._clock().timestamp()) >= claims.expires_at:
            raise TokenExpired("token has expired", username=claims.username)
        return claims
