"""Security audit events and the sink that records them without leaking PII."""

import hashlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

security_logger = logging.getLogger("cadence.security")

ANONYMOUS = "anonymous"


class AuditEventType(str, Enum):
    AUTH_SUCCESS = "AUTH_SUCCESS"
    AUTH_FAILED = "AUTH_FAILED"
    REGISTRATION = "REGISTRATION"
    SESSION_CREATED = "SESSION_CREATED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    LOGOUT = "LOGOUT"
    ACCESS_DENIED = "ACCESS_DENIED"
    ADMIN_ACTION = "ADMIN_ACTION"
    VALIDATION_FAILURE = "VALIDATION_FAILURE"
    DATA_ACCESS = "DATA_ACCESS"
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"
    PASSWORD_RESET_TOKEN_EXPIRED = "PASSWORD_RESET_TOKEN_EXPIRED"
    PASSWORD_RESET_INVALID_TOKEN = "PASSWORD_RESET_INVALID_TOKEN"
    PASSWORD_RESET_SUCCESS = "PASSWORD_RESET_SUCCESS"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"


@dataclass(frozen=True)
class AuditEvent:
    """
    One security-relevant occurrence.

    ``subject`` is the raw identifier (username or email); sinks must hash it
    before it is written anywhere. ``details`` is a short fixed phrase, never
    user input.
    """

    event_type: AuditEventType
    subject: str | None = None
    ip_address: str | None = None
    resource: str | None = None
    details: str = ""
    success: bool = True
    extra: dict[str, str] = field(default_factory=dict)


class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None: ...


def hash_identifier(identifier: str | None) -> str:
    """Stable pseudonym for a username/email: user_ + 8 hex chars of SHA-256."""
    if not identifier or identifier == ANONYMOUS:
        return ANONYMOUS
    digest = hashlib.sha256(identifier.encode("utf-8")).hexdigest()
    return "user_" + digest[:8]


def mask_ip(ip_address: str | None) -> str:
    """Keep the first two IPv4 octets; anything else is reduced to a presence marker."""
    if not ip_address:
        return "unknown"
    parts = ip_address.split(".")
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.x.x"
    return "ip_present"


def strip_newlines(value: str) -> str:
    return value.replace("\r", "").replace("\n", "")


def sanitize_resource(resource: str | None) -> str:
    """Collapse paths deeper than two segments so ids do not reach the log."""
    if not resource:
        return "-"
    resource = strip_newlines(resource)
    parts = resource.split("/")
    if len(parts) > 3:
        return "/".join(parts[:3]) + "/*"
    return resource


class LoggingAuditSink:
    """Writes sanitized audit events to the ``cadence.security`` logger."""

    def __init__(self, logger: logging.Logger = security_logger) -> None:
        self._logger = logger

    def record(self, event: AuditEvent) -> None:
        extra = " ".join(
            f"{strip_newlines(k)}={strip_newlines(v)}" for k, v in sorted(event.extra.items())
        )
        message = "Event: %s | UserHash: %s | IP: %s | Resource: %s | Details: %s"
        args = [
            event.event_type.value,
            hash_identifier(event.subject),
            mask_ip(event.ip_address),
            sanitize_resource(event.resource),
            strip_newlines(event.details),
        ]
        if extra:
            message += " | %s"
            args.append(extra)
        level = logging.INFO if event.success else logging.WARNING
        self._logger.log(level, message, *args)

