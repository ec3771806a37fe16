"""Registration, login, profile lookup and password-reset flows."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from cadence.core.errors import (
    AuthorizationFailed,
    ConflictError,
    InternalError,
    MailDeliveryError,
    NotFoundError,
    ValidationError,
)
from cadence.core.security import (
    EMAIL_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    USERNAME_MIN_LEN,
    PasswordHasher,
    TokenService,
)
from cadence.models.user import User
from cadence.repositories.users import DuplicateKey, UserNotFound, UserRepository
from cadence.services.audit import AuditEvent, AuditEventType, AuditSink
from cadence.services.mailer import Mailer
from cadence.services.reset_tokens import (
    ResetTokenError,
    ResetTokenExpired,
    ResetTokenNotFound,
    ResetTokenStore,
)

logger = logging.getLogger(__name__)

# Client-facing messages. Failures with different causes share one message on purpose.
REGISTRATION_CONFLICT = "username or email already exists"
LOGIN_FAILED = "authorization failed"
INVALID_RESET_TOKEN = "invalid or expired reset token"
INVALID_EMAIL = "Valid email address is required"
PASSWORD_TOO_SHORT = f"password must be at least {PASSWORD_MIN_LEN} characters"
PASSWORD_TOO_LONG = f"password must be at most {PASSWORD_MAX_LEN} characters"
INVALID_USERNAME = f"username must be {USERNAME_MIN_LEN}-{USERNAME_MAX_LEN} characters"
USER_NOT_FOUND = "user not found"


def is_valid_email(email: str) -> bool:
    """Shape check only: length bounds plus an '@' and a '.'."""
    email = email.strip()
    return 3 < len(email) < EMAIL_MAX_LEN and "@" in email and "." in email


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: User


class AuthService:
    """
    Orchestrates the credential store, hasher, token service, reset-token
    store, mailer and audit sink. Every failure leaving this class is one of
    the AppError kinds in cadence.core.errors.
    """

    def __init__(
        self,
        users: UserRepository,
        hasher: PasswordHasher,
        tokens: TokenService,
        reset_tokens: ResetTokenStore,
        mailer: Mailer,
        audit: AuditSink,
    ) -> None:
        self.users = users
        self.hasher = hasher
        self.tokens = tokens
        self.reset_tokens = reset_tokens
        self.mailer = mailer
        self.audit = audit

    # -- registration / login -------------------------------------------------

    def register(
        self,
        username: str,
        email: str,
        password: str,
        ip_address: str | None = None,
    ) -> User:
        """Create a non-admin account. Raises ValidationError or ConflictError."""
        username = username.strip()
        email = email.strip()
        if not (USERNAME_MIN_LEN <= len(username) <= USERNAME_MAX_LEN):
            self._validation_failure(username, ip_address, "username", "Invalid username length")
            raise ValidationError(INVALID_USERNAME)
        if not is_valid_email(email):
            self._validation_failure(username, ip_address, "email", "Invalid email format")
            raise ValidationError(INVALID_EMAIL)
        self._check_password_policy(password, username, ip_address)

        password_hash = self.hasher.hash(password)
        with self._storage_errors("registration"):
            try:
                user = self.users.create(username, email, password_hash)
            except DuplicateKey:
                self._record(
                    AuditEvent(
                        AuditEventType.REGISTRATION,
                        subject=username,
                        ip_address=ip_address,
                        details="Registration failed - duplicate",
                        success=False,
                    )
                )
                raise ConflictError(REGISTRATION_CONFLICT)

        self._record(
            AuditEvent(
                AuditEventType.REGISTRATION,
                subject=username,
                ip_address=ip_address,
                details="User registered successfully",
            )
        )
        logger.info("New user registered: user_id=%s", user.id)
        return user

    def login(self, identifier: str, password: str, ip_address: str | None = None) -> LoginResult:
        """
        Authenticate by username or email. Unknown account and wrong password
        raise the same AuthorizationFailed after the same amount of hashing work.
        """
        with self._storage_errors("login"):
            try:
                user = self.users.find_by_username_or_email(identifier.strip())
            except UserNotFound:
                user = None

        if user is None:
            self.hasher.verify_dummy(password)
            self._login_failed(identifier, ip_address)
            raise AuthorizationFailed(LOGIN_FAILED)
        if not self.hasher.verify(password, user.password_hash):
            self._login_failed(identifier, ip_address)
            raise AuthorizationFailed(LOGIN_FAILED)

        self.users.touch_last_login(user.id)
        token = self.tokens.issue(user.id, user.username, bool(user.is_admin))

        self._record(
            AuditEvent(
                AuditEventType.AUTH_SUCCESS,
                subject=user.username,
                ip_address=ip_address,
                details="Login successful",
            )
        )
        self._record(
            AuditEvent(
                AuditEventType.SESSION_CREATED,
                subject=user.username,
                ip_address=ip_address,
                details="New session established",
            )
        )
        return LoginResult(token=token, user=user)

    def logout(self, username: str, ip_address: str | None = None) -> None:
        """Sessions are stateless; logout only leaves an audit trail."""
        self._record(
            AuditEvent(
                AuditEventType.LOGOUT,
                subject=username,
                ip_address=ip_address,
                details="User logged out",
            )
        )

    def get_profile(self, user_id: int) -> User:
        with self._storage_errors("profile lookup"):
            try:
                return self.users.find_by_id(user_id)
            except UserNotFound:
                raise NotFoundError(USER_NOT_FOUND)

    def list_users(self) -> list[User]:
        with self._storage_errors("user listing"):
            return self.users.list_users()

    # -- password reset -------------------------------------------------------

    def request_password_reset(self, email: str, ip_address: str | None = None) -> None:
        """
        Issue a reset token and mail the link when the email belongs to an
        account; return silently when it does not. If mail dispatch fails the
        token is dropped and MailDeliveryError is raised.
        """
        if not is_valid_email(email):
            raise ValidationError(INVALID_EMAIL)
        with self._storage_errors("password reset request"):
            try:
                user = self.users.find_by_email(email)
            except UserNotFound:
                self._record(
                    AuditEvent(
                        AuditEventType.PASSWORD_RESET_REQUESTED,
                        subject=email,
                        ip_address=ip_address,
                        details="Password reset requested for unknown email",
                        success=False,
                    )
                )
                return

        token = self.reset_tokens.issue(user.email)
        self._record(
            AuditEvent(
                AuditEventType.PASSWORD_RESET_REQUESTED,
                subject=user.username,
                ip_address=ip_address,
                details="Password reset token generated",
            )
        )
        try:
            self.mailer.send_password_reset(user.email, token)
        except MailDeliveryError:
            self._revoke(user.email, token)
            raise
        except Exception as e:
            self._revoke(user.email, token)
            logger.exception("Unexpected mailer failure")
            raise MailDeliveryError() from e

    def validate_reset_token(self, token: str, ip_address: str | None = None) -> str:
        """Return the email for a live token; any failure is one generic ValidationError."""
        try:
            return self.reset_tokens.validate(token)
        except ResetTokenExpired:
            self._record(
                AuditEvent(
                    AuditEventType.PASSWORD_RESET_TOKEN_EXPIRED,
                    ip_address=ip_address,
                    details="Expired token used",
                    success=False,
                )
            )
        except ResetTokenNotFound:
            self._record(
                AuditEvent(
                    AuditEventType.PASSWORD_RESET_INVALID_TOKEN,
                    ip_address=ip_address,
                    details="Invalid reset token used",
                    success=False,
                )
            )
        raise ValidationError(INVALID_RESET_TOKEN)

    def reset_password(self, token: str, new_password: str, ip_address: str | None = None) -> None:
        """
        Set a new password for the token's account.

        The token is consumed atomically right before the write, so concurrent
        resets holding one token succeed at most once. If the write fails on
        a storage error or a missing account the token is put back.
        """
        email = self.validate_reset_token(token, ip_address)
        self._check_password_policy(new_password, email, ip_address)
        new_hash = self.hasher.hash(new_password)

        try:
            record = self.reset_tokens.consume(email, token)
        except ResetTokenError:
            self._record(
                AuditEvent(
                    AuditEventType.PASSWORD_RESET_INVALID_TOKEN,
                    ip_address=ip_address,
                    details="Reset token already used",
                    success=False,
                )
            )
            raise ValidationError(INVALID_RESET_TOKEN)

        try:
            with self._storage_errors("password reset"):
                user = self.users.find_by_email(record.email)
                self.users.update_password_hash(user.id, new_hash)
        except UserNotFound:
            self.reset_tokens.restore(record)
            logger.warning("Reset token resolved to an email without an account")
            raise ValidationError(INVALID_RESET_TOKEN)
        except InternalError:
            self.reset_tokens.restore(record)
            raise

        self._record(
            AuditEvent(
                AuditEventType.PASSWORD_RESET_SUCCESS,
                subject=user.username,
                ip_address=ip_address,
                details="Password reset completed",
            )
        )
        logger.info("Password reset completed: user_id=%s", user.id)

    # -- helpers --------------------------------------------------------------

    def _check_password_policy(
        self, password: str, subject: str | None, ip_address: str | None
    ) -> None:
        if len(password) < PASSWORD_MIN_LEN:
            self._validation_failure(subject, ip_address, "password", "Password too short")
            raise ValidationError(PASSWORD_TOO_SHORT)
        if len(password) > PASSWORD_MAX_LEN:
            self._validation_failure(subject, ip_address, "password", "Password too long")
            raise ValidationError(PASSWORD_TOO_LONG)

    def _login_failed(self, identifier: str, ip_address: str | None) -> None:
        # Same event and details whether or not the account exists.
        self._record(
            AuditEvent(
                AuditEventType.AUTH_FAILED,
                subject=identifier,
                ip_address=ip_address,
                details="Invalid credentials",
                success=False,
            )
        )

    def _validation_failure(
        self, subject: str | None, ip_address: str | None, field: str, reason: str
    ) -> None:
        self._record(
            AuditEvent(
                AuditEventType.VALIDATION_FAILURE,
                subject=subject,
                ip_address=ip_address,
                details=f"Field: {field} | Reason: {reason}",
                success=False,
            )
        )

    def _revoke(self, email: str, token: str) -> None:
        # A token that is already gone or replaced needs no rollback.
        with suppress(ResetTokenError):
            self.reset_tokens.consume(email, token)

    def _record(self, event: AuditEvent) -> None:
        try:
            self.audit.record(event)
        except Exception:
            logger.warning("Audit sink failed for %s", event.event_type.value, exc_info=True)

    @contextmanager
    def _storage_errors(self, action: str) -> Iterator[None]:
        """Translate database failures into InternalError after logging them."""
        try:
            yield
        except SQLAlchemyError as e:
            self.users.session.rollback()
            logger.error("Database error during %s", action, exc_info=True)
            raise InternalError() from e
