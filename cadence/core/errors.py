"""Application error taxonomy with client-safe messages.

Every failure that crosses the service boundary is one of these kinds. The
``message`` is what the client sees; internal detail is logged where the
error is raised and never attached here.
"""

from fastapi import status

INTERNAL_ERROR_MESSAGE = "An internal error occurred. Please try again later."


class AppError(Exception):
    """Base class for errors rendered to clients as {"detail", "code"}."""

    code = "APP_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(AppError):
    """Bad input shape or password-policy violation."""

    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationFailed(AppError):
    """Bad credentials, or a missing or invalid session token."""

    code = "AUTH_ERROR"
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(AppError):
    """Authenticated but lacking the required role."""

    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    """Registration collided with an existing username or email."""

    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class RateLimited(AppError):
    """Client exceeded its request budget; ``retry_after`` is in seconds."""

    code = "RATE_LIMIT"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after: int) -> None:
        super().__init__("Too many requests. Please try again later.")
        self.retry_after = retry_after


class InternalError(AppError):
    """Unexpected failure; the message is always the generic one."""

    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self) -> None:
        super().__init__(INTERNAL_ERROR_MESSAGE)


class MailDeliveryError(InternalError):
    """Outgoing mail could not be handed to the relay."""
