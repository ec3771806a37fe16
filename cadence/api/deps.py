"""Process-wide collaborators and the per-request AuthService factory."""

import logging
from datetime import timedelta
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from cadence.core.config import get_settings
from cadence.core.database import get_db
from cadence.core.errors import RateLimited
from cadence.core.security import PasswordHasher, TokenService
from cadence.repositories.users import UserRepository
from cadence.services.audit import AuditEvent, AuditEventType, AuditSink, LoggingAuditSink
from cadence.services.auth import AuthService
from cadence.services.mailer import Mailer, SmtpMailer
from cadence.services.rate_limit import SlidingWindowLimiter
from cadence.services.reset_tokens import InMemoryResetTokenStore

logger = logging.getLogger(__name__)


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=get_settings().BCRYPT_ROUNDS)


@lru_cache
def get_token_service() -> TokenService:
    settings = get_settings()
    return TokenService(
        secret=settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
        ttl=timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
    )


@lru_cache
def get_reset_token_store() -> InMemoryResetTokenStore:
    """One store per process; reset tokens do not survive a restart."""
    settings = get_settings()
    return InMemoryResetTokenStore(
        ttl=timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
    )


@lru_cache
def get_mailer() -> Mailer:
    return SmtpMailer(get_settings())


@lru_cache
def get_audit_sink() -> AuditSink:
    return LoggingAuditSink()


def get_auth_service(
    db: Annotated[Session, Depends(get_db)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    reset_tokens: Annotated[InMemoryResetTokenStore, Depends(get_reset_token_store)],
    mailer: Annotated[Mailer, Depends(get_mailer)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
) -> AuthService:
    return AuthService(
        users=UserRepository(db),
        hasher=hasher,
        tokens=tokens,
        reset_tokens=reset_tokens,
        mailer=mailer,
        audit=audit,
    )


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


@lru_cache
def get_rate_limiter() -> SlidingWindowLimiter:
    """Budget shared by every API route."""
    return SlidingWindowLimiter(get_settings().RATE_LIMIT_PER_MINUTE)


@lru_cache
def get_auth_rate_limiter() -> SlidingWindowLimiter:
    """Tighter budget for credential and reset endpoints."""
    return SlidingWindowLimiter(get_settings().AUTH_RATE_LIMIT_PER_MINUTE)


def _throttle(
    limiter: SlidingWindowLimiter, request: Request, audit: AuditSink, scope: str
) -> None:
    ip = client_ip(request)
    decision = limiter.hit(ip or "unknown")
    if decision.allowed:
        return
    try:
        audit.record(
            AuditEvent(
                AuditEventType.RATE_LIMIT_EXCEEDED,
                ip_address=ip,
                resource=request.url.path,
                details=f"Rate limit exceeded ({scope})",
                success=False,
            )
        )
    except Exception:
        logger.warning("Audit sink failed for RATE_LIMIT_EXCEEDED", exc_info=True)
    raise RateLimited(decision.retry_after)


def enforce_rate_limit(
    request: Request,
    limiter: Annotated[SlidingWindowLimiter, Depends(get_rate_limiter)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
) -> None:
    _throttle(limiter, request, audit, "api")


def enforce_auth_rate_limit(
    request: Request,
    limiter: Annotated[SlidingWindowLimiter, Depends(get_auth_rate_limiter)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
) -> None:
    _throttle(limiter, request, audit, "auth")
