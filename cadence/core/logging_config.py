"""Process-wide logging setup with redaction of credentials in log records."""

import logging
import re

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# (pattern, replacement) applied to the fully formatted message.
REDACTION_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(bearer\s+)[A-Za-z0-9_\-\.=]+", re.IGNORECASE), r"\1***REDACTED***"),
    (
        re.compile(r"\beyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+"),
        "***JWT***",
    ),
    (
        re.compile(r"((?:new_|confirm_)?password['\"]?\s*[:=]\s*['\"]?)[^'\"\s,}]+", re.IGNORECASE),
        r"\1***REDACTED***",
    ),
    (re.compile(r"([?&]token=)[^&\s]+", re.IGNORECASE), r"\1***REDACTED***"),
)


def redact(message: str) -> str:
    """Mask tokens and passwords that would otherwise end up in logs."""
    for pattern, replacement in REDACTION_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class RedactingFilter(logging.Filter):
    """Rewrites each record's message with credentials masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler once; safe to call repeatedly."""
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(RedactingFilter())
