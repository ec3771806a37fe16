"""Application configuration loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Allowed URL schemes for DATABASE_URL (module-level so validators can use it).
VALID_DATABASE_URL_PREFIXES = (
    "sqlite://",
    "postgresql://",
    "postgresql+psycopg2://",
    "postgres://",
    "postgres+psycopg2://",
)

# Only the HMAC family is accepted; asymmetric or "none" algorithms are rejected.
ALLOWED_JWT_ALGORITHMS = ("HS256", "HS384", "HS512")

DEFAULT_JWT_SECRET = "change-me-in-production"
PROD_MIN_JWT_SECRET_LEN = 32


class Settings(BaseSettings):
    """Validated application settings from env and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    APP_ENV: Literal["dev", "prod"] = "dev"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    API_PREFIX: str = "/api"
    CORS_ALLOW_ORIGINS: list[str] = []

    # SQLite for local runs; Postgres in production
    DATABASE_URL: str = "sqlite:///./cadence.db"

    # Session tokens (JWT)
    JWT_SECRET: SecretStr = SecretStr(DEFAULT_JWT_SECRET)
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 10080

    # Password hashing
    BCRYPT_ROUNDS: int = 12

    # Password reset
    PASSWORD_RESET_EXPIRE_MINUTES: int = 15
    # 0 disables the background sweep; expired tokens are then purged lazily on lookup.
    RESET_TOKEN_SWEEP_INTERVAL_SEC: int = 0
    PUBLIC_BASE_URL: str = "https://localhost:2701"

    # Requests per client IP per minute; 0 disables. The auth budget applies to
    # login, forgot-password and reset-password on top of the global one.
    RATE_LIMIT_PER_MINUTE: int = 50
    AUTH_RATE_LIMIT_PER_MINUTE: int = 10

    # Mail relay (optional; required only for POST /auth/forgot-password to deliver mail)
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: SecretStr | None = None
    SMTP_FROM: str | None = None
    SMTP_USE_TLS: bool = True
    SMTP_TIMEOUT_SEC: float = 10.0

    @field_validator("API_PREFIX")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith("/"):
            raise ValueError("API_PREFIX must start with '/' (e.g. /api)")
        if len(v) > 1 and v.endswith("/"):
            raise ValueError("API_PREFIX must not end with '/'")
        return v

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("DATABASE_URL must be set and non-empty")
        if not any(v.startswith(prefix) for prefix in VALID_DATABASE_URL_PREFIXES):
            raise ValueError(
                "DATABASE_URL must be a SQLite or PostgreSQL URL "
                "(e.g. sqlite:///./cadence.db or postgresql+psycopg2://...)"
            )
        return v.strip()

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value() or not v.get_secret_value().strip():
            raise ValueError("JWT_SECRET must be set and non-empty")
        return v

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in ALLOWED_JWT_ALGORITHMS:
            raise ValueError(
                f"JWT_ALGORITHM must be one of {', '.join(ALLOWED_JWT_ALGORITHMS)}"
            )
        return v

    @field_validator("JWT_EXPIRE_MINUTES")
    @classmethod
    def validate_jwt_expire_minutes(cls, v: int) -> int:
        if v < 1 or v > 10080:
            raise ValueError(
                "JWT_EXPIRE_MINUTES must be between 1 and 10080 (1 min to 7 days)"
            )
        return v

    @field_validator("BCRYPT_ROUNDS")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if v < 10 or v > 16:
            raise ValueError("BCRYPT_ROUNDS must be between 10 and 16")
        return v

    @field_validator("PASSWORD_RESET_EXPIRE_MINUTES")
    @classmethod
    def validate_reset_expire_minutes(cls, v: int) -> int:
        if v < 1 or v > 1440:
            raise ValueError(
                "PASSWORD_RESET_EXPIRE_MINUTES must be between 1 and 1440 (1 min to 1 day)"
            )
        return v

    @field_validator("RESET_TOKEN_SWEEP_INTERVAL_SEC")
    @classmethod
    def validate_sweep_interval(cls, v: int) -> int:
        if v != 0 and (v < 10 or v > 86400):
            raise ValueError(
                "RESET_TOKEN_SWEEP_INTERVAL_SEC must be 0 (disabled) or between 10 and 86400"
            )
        return v

    @field_validator("RATE_LIMIT_PER_MINUTE", "AUTH_RATE_LIMIT_PER_MINUTE")
    @classmethod
    def validate_rate_limit(cls, v: int) -> int:
        if v < 0 or v > 10000:
            raise ValueError("rate limits must be between 0 (disabled) and 10000 per minute")
        return v

    @field_validator("PUBLIC_BASE_URL")
    @classmethod
    def validate_public_base_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("PUBLIC_BASE_URL must be set and non-empty")
        s = v.strip().lower()
        if not (s.startswith("http://") or s.startswith("https://")):
            raise ValueError(
                "PUBLIC_BASE_URL must use http or https (e.g. https://music.example.com)"
            )
        return v.strip().rstrip("/")

    @field_validator("SMTP_PORT")
    @classmethod
    def validate_smtp_port(cls, v: int) -> int:
        if v < 1 or v > 65535:
            raise ValueError("SMTP_PORT must be between 1 and 65535")
        return v

    @field_validator("SMTP_TIMEOUT_SEC")
    @classmethod
    def validate_smtp_timeout(cls, v: float) -> float:
        if v <= 0 or v > 120:
            raise ValueError("SMTP_TIMEOUT_SEC must be greater than 0 and at most 120")
        return v

    @model_validator(mode="after")
    def validate_prod_secret(self) -> "Settings":
        if self.APP_ENV != "prod":
            return self
        secret = self.JWT_SECRET.get_secret_value()
        if secret == DEFAULT_JWT_SECRET or len(secret) < PROD_MIN_JWT_SECRET_LEN:
            raise ValueError(
                f"JWT_SECRET must be changed from the default and be at least "
                f"{PROD_MIN_JWT_SECRET_LEN} characters when APP_ENV=prod"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance (safe to call from dependencies)."""
    return Settings()


settings = get_settings()
