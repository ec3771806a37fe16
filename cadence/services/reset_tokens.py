"""Password-reset tokens: short-lived, single-use, looked up by token value."""

import hmac
import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from cadence.core.security import Clock, utc_now

logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(minutes=15)
# 32 bytes = 256 bits of randomness, URL-safe base64 without padding.
RESET_TOKEN_BYTES = 32


class ResetTokenError(Exception):
    """Base for reset-token lookup failures."""


class ResetTokenNotFound(ResetTokenError):
    pass


class ResetTokenExpired(ResetTokenError):
    pass


@dataclass(frozen=True)
class ResetTokenRecord:
    token: str
    email: str
    expires_at: datetime


class ResetTokenStore(Protocol):
    """Contract the auth service relies on; backing storage is interchangeable."""

    def issue(self, email: str) -> str: ...

    def validate(self, token: str) -> str: ...

    def consume(self, email: str, token: str) -> ResetTokenRecord: ...

    def restore(self, record: ResetTokenRecord) -> bool: ...


class InMemoryResetTokenStore:
    """
    Process-local reset-token store for single-instance deployments.

    One live record per email: issuing again replaces the previous record, so
    an earlier token for the same address stops resolving. Expired records are
    removed when they are looked up, or by purge_expired() when a sweep runs;
    records nobody looks up stay in memory until then.
    """

    def __init__(self, ttl: timedelta = RESET_TOKEN_TTL, clock: Clock = utc_now) -> None:
        self.ttl = ttl
        self._clock = clock
        self._records: dict[str, ResetTokenRecord] = {}
        self._lock = threading.Lock()

    def issue(self, email: str) -> str:
        token = secrets.token_urlsafe(RESET_TOKEN_BYTES)
        record = ResetTokenRecord(token=token, email=email, expires_at=self._clock() + self.ttl)
        with self._lock:
            self._records[email] = record
        return token

    def validate(self, token: str) -> str:
        """
        Return the email the token was issued for without consuming it.
        Raises ResetTokenExpired (and drops the record) or ResetTokenNotFound.
        """
        with self._lock:
            return self._live_record(token).email

    def consume(self, email: str, token: str) -> ResetTokenRecord:
        """
        Remove the entry for ``email`` if it still holds ``token``, in one
        step. Of several callers holding the same token exactly one gets the
        record; the rest get ResetTokenNotFound. A newer token issued for the
        email in the meantime is left in place.
        """
        with self._lock:
            record = self._records.get(email)
            if record is None or not hmac.compare_digest(record.token.encode(), token.encode()):
                raise ResetTokenNotFound("reset token already used or replaced")
            del self._records[email]
            if self._clock() >= record.expires_at:
                raise ResetTokenExpired("reset token has expired")
            return record

    def restore(self, record: ResetTokenRecord) -> bool:
        """
        Put back a consumed record after the caller failed to use it. Skipped
        when the record has expired or a newer token was issued for the email.
        """
        with self._lock:
            if record.email in self._records or self._clock() >= record.expires_at:
                return False
            self._records[record.email] = record
            return True

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [email for email, r in self._records.items() if now >= r.expires_at]
            for email in expired:
                del self._records[email]
        if expired:
            logger.info("Reset token sweep: purged=%s", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _live_record(self, token: str) -> ResetTokenRecord:
        # Caller holds the lock.
        if not token:
            raise ResetTokenNotFound("empty token")
        record = self._find(token)
        if record is None:
            raise ResetTokenNotFound("unknown reset token")
        if self._clock() >= record.expires_at:
            del self._records[record.email]
            raise ResetTokenExpired("reset token has expired")
        return record

    def _find(self, token: str) -> ResetTokenRecord | None:
        # Compare against every record so lookup time does not depend on where a match sits.
        found = None
        for record in self._records.values():
            if hmac.compare_digest(record.token.encode(), token.encode()):
                found = record
        return found
