"""Auth routes and the access-control dependencies (get_current_user, require_admin)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cadence.api.deps import (
    client_ip,
    enforce_auth_rate_limit,
    get_audit_sink,
    get_auth_service,
    get_token_service,
)
from cadence.core.errors import AuthorizationFailed, Forbidden, MailDeliveryError, ValidationError
from cadence.core.security import TokenExpired, TokenError, TokenService
from cadence.schemas.auth import (
    CurrentUser,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    ResetTokenValidResponse,
    UserPublic,
)
from cadence.services.audit import AuditEvent, AuditEventType, AuditSink
from cadence.services.auth import AuthService

logger = logging.getLogger(__name__)

router = APIRouter()
# Declares the bearer scheme in OpenAPI; the header itself is parsed in get_current_user.
security = HTTPBearer(auto_error=False)

AUTH_REQUIRED = "Authentication required"
INVALID_AUTH_FORMAT = "Invalid authorization format"
INVALID_TOKEN = "Invalid or expired token"
ADMIN_REQUIRED = "Admin access required"
FORGOT_PASSWORD_ACK = (
    "If your email is registered, you will receive a password reset link shortly."
)


def parse_bearer(header: str) -> str | None:
    """Return the token from 'Bearer <token>', or None if the header has any other shape."""
    parts = header.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        return None
    return parts[1]


def _audit(audit: AuditSink, event: AuditEvent) -> None:
    try:
        audit.record(event)
    except Exception:
        logger.warning("Audit sink failed for %s", event.event_type.value, exc_info=True)


def _deny(audit: AuditSink, request: Request, reason: str, subject: str | None = None) -> None:
    _audit(
        audit,
        AuditEvent(
            AuditEventType.ACCESS_DENIED,
            subject=subject,
            ip_address=client_ip(request),
            resource=request.url.path,
            details=reason,
            success=False,
        ),
    )


def get_current_user(
    request: Request,
    _credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
) -> CurrentUser:
    """
    Dependency: require a valid Bearer session token.

    Attaches the identity to request.state.user. Raises AuthorizationFailed
    (401) for a missing header, a malformed header, or a bad/expired token.
    Every route behind this gate serves account data, so a pass is recorded
    as DATA_ACCESS.
    """
    header = request.headers.get("Authorization")
    if not header:
        _deny(audit, request, "No authorization token provided")
        raise AuthorizationFailed(AUTH_REQUIRED)
    token = parse_bearer(header)
    if token is None:
        _deny(audit, request, "Invalid authorization format")
        raise AuthorizationFailed(INVALID_AUTH_FORMAT)
    try:
        claims = tokens.validate(token)
    except TokenExpired as e:
        _audit(
            audit,
            AuditEvent(
                AuditEventType.SESSION_EXPIRED,
                subject=e.username,
                ip_address=client_ip(request),
                details="Session has expired",
                success=False,
            ),
        )
        _deny(audit, request, "Expired token", subject=e.username)
        raise AuthorizationFailed(INVALID_TOKEN)
    except TokenError as e:
        logger.debug("Session token rejected: %s", type(e).__name__)
        _deny(audit, request, "Invalid token")
        raise AuthorizationFailed(INVALID_TOKEN)

    current = CurrentUser(id=claims.user_id, username=claims.username, is_admin=claims.is_admin)
    request.state.user = current
    _audit(
        audit,
        AuditEvent(
            AuditEventType.DATA_ACCESS,
            subject=current.username,
            ip_address=client_ip(request),
            resource=request.url.path,
            details=f"{request.method} request",
        ),
    )
    return current


def require_admin(
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
) -> CurrentUser:
    """Dependency: require an authenticated admin. Raises Forbidden (403) otherwise."""
    if not current_user.is_admin:
        _deny(audit, request, ADMIN_REQUIRED, subject=current_user.username)
        raise Forbidden(ADMIN_REQUIRED)
    _audit(
        audit,
        AuditEvent(
            AuditEventType.ADMIN_ACTION,
            subject=current_user.username,
            ip_address=client_ip(request),
            resource=request.url.path,
            details=f"{request.method} admin endpoint accessed",
        ),
    )
    return current_user


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> RegisterResponse:
    """Create an account. Duplicate username or email yields 409 without naming the field."""
    user = service.register(body.username, body.email, body.password, client_ip(request))
    return RegisterResponse(user=UserPublic.model_validate(user))


@router.post(
    "/login", response_model=LoginResponse, dependencies=[Depends(enforce_auth_rate_limit)]
)
def login(
    body: LoginRequest,
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> LoginResponse:
    """
    Authenticate with username (or email) and password; returns a session token.
    Include the token in the Authorization header as: Bearer <token>
    """
    result = service.login(body.username, body.password, client_ip(request))
    return LoginResponse(token=result.token, user=UserPublic.model_validate(result.user))


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Acknowledge logout. The token stays valid until expiry; clients discard it."""
    service.logout(current_user.username, client_ip(request))
    return MessageResponse(message="logout successful")


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    dependencies=[Depends(enforce_auth_rate_limit)],
)
def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Start a password reset. The answer is the same whether or not the email is registered."""
    try:
        service.request_password_reset(body.email, client_ip(request))
    except MailDeliveryError:
        # Surfacing this would reveal that the address has an account.
        logger.error("Password reset request failed: mail not delivered")
    return MessageResponse(message=FORGOT_PASSWORD_ACK)


@router.get(
    "/validate-reset-token",
    response_model=ResetTokenValidResponse,
    dependencies=[Depends(enforce_auth_rate_limit)],
)
def validate_reset_token(
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
    token: Annotated[str | None, Query(max_length=1024)] = None,
) -> ResetTokenValidResponse:
    """Check a reset token from an emailed link without consuming it."""
    if not token:
        raise ValidationError("Reset token is required")
    email = service.validate_reset_token(token, client_ip(request))
    return ResetTokenValidResponse(email=email)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    dependencies=[Depends(enforce_auth_rate_limit)],
)
def reset_password(
    body: ResetPasswordRequest,
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Set a new password using a reset token; the token is consumed on success."""
    if not body.token or not body.new_password or not body.confirm_password:
        raise ValidationError("All fields are required")
    if body.new_password != body.confirm_password:
        raise ValidationError("Passwords do not match")
    service.reset_password(body.token, body.new_password, client_ip(request))
    return MessageResponse(
        message="Password reset successful. Please login with your new password."
    )
