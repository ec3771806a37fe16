"""Shared fixtures for tests: fake clock, in-memory database, fake mailers."""

from collections.abc import Generator
from datetime import UTC, datetime, timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cadence.core.errors import MailDeliveryError
from cadence.core.security import PasswordHasher, TokenService
from cadence.models import Base
from cadence.repositories.users import UserRepository
from cadence.services.audit import AuditEvent, AuditEventType
from cadence.services.auth import AuthService
from cadence.services.reset_tokens import InMemoryResetTokenStore

TEST_SECRET = "test-secret-key-for-unit-tests-0123456789"
# Lowest bcrypt cost keeps the suite fast; production config enforces >= 10.
FAST_ROUNDS = 4

HASHER = PasswordHasher(rounds=FAST_ROUNDS)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingAuditSink:
    """Keeps audit events in memory."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    def types(self) -> list[AuditEventType]:
        return [e.event_type for e in self.events]


class RecordingMailer:
    """Captures reset mails instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send_password_reset(self, to_email: str, token: str) -> None:
        self.sent.append((to_email, token))

    @property
    def last_token(self) -> str:
        return self.sent[-1][1]


class FailingMailer:
    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or MailDeliveryError()
        self.attempts = 0

    def send_password_reset(self, to_email: str, token: str) -> None:
        self.attempts += 1
        raise self.exc


def make_session_factory(url: str = "sqlite://") -> sessionmaker:
    """Engine with the schema created; in-memory SQLite shares one connection."""
    if url == "sqlite://":
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def override_get_db(factory: sessionmaker):
    """Build a get_db replacement bound to a test session factory."""

    def _get_db() -> Generator[Session, None, None]:
        db = factory()
        try:
            yield db
        finally:
            db.close()

    return _get_db


def make_auth_service(
    session: Session,
    clock: FakeClock | None = None,
    mailer: object | None = None,
    audit: object | None = None,
    reset_tokens: InMemoryResetTokenStore | None = None,
) -> AuthService:
    clock = clock or FakeClock()
    return AuthService(
        users=UserRepository(session),
        hasher=HASHER,
        tokens=TokenService(TEST_SECRET, clock=clock),
        reset_tokens=reset_tokens or InMemoryResetTokenStore(clock=clock),
        mailer=mailer if mailer is not None else RecordingMailer(),
        audit=audit if audit is not None else RecordingAuditSink(),
    )
