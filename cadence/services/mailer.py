"""Outgoing mail: password-reset links delivered through an SMTP relay."""

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol
from urllib.parse import urlencode

from cadence.core.config import Settings
from cadence.core.errors import MailDeliveryError

logger = logging.getLogger(__name__)

RESET_PAGE_PATH = "/reset-password.html"
RESET_SUBJECT = "Password Reset Request - Cadence"

RESET_BODY_TEMPLATE = """Hello,

You requested a password reset for your Cadence account.

Click the link below to reset your password:
{link}

This link will expire in {minutes} minutes.

If you didn't request this, please ignore this email and your password will remain unchanged.

Best regards,
Cadence Team
"""


class Mailer(Protocol):
    def send_password_reset(self, to_email: str, token: str) -> None: ...


def build_reset_link(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}{RESET_PAGE_PATH}?{urlencode({'token': token})}"


class SmtpMailer:
    """Sends mail synchronously with a bounded socket timeout; raises MailDeliveryError."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def _is_configured(self) -> bool:
        s = self.settings
        if not s.SMTP_HOST or not s.SMTP_HOST.strip():
            return False
        if not s.SMTP_FROM or not s.SMTP_FROM.strip():
            return False
        return True

    def build_reset_message(self, to_email: str, token: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.SMTP_FROM
        message["To"] = to_email
        message["Subject"] = RESET_SUBJECT
        message.set_content(
            RESET_BODY_TEMPLATE.format(
                link=build_reset_link(self.settings.PUBLIC_BASE_URL, token),
                minutes=self.settings.PASSWORD_RESET_EXPIRE_MINUTES,
            )
        )
        return message

    def send_password_reset(self, to_email: str, token: str) -> None:
        if not self._is_configured():
            logger.error("Mail relay is not configured (SMTP_HOST/SMTP_FROM missing)")
            raise MailDeliveryError()
        message = self.build_reset_message(to_email, token)
        s = self.settings
        try:
            with smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT, timeout=s.SMTP_TIMEOUT_SEC) as smtp:
                if s.SMTP_USE_TLS:
                    smtp.starttls()
                if s.SMTP_USER and s.SMTP_PASSWORD is not None:
                    smtp.login(s.SMTP_USER, s.SMTP_PASSWORD.get_secret_value())
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send password reset email: %s", type(e).__name__)
            raise MailDeliveryError() from e
        logger.info("Password reset email dispatched")
