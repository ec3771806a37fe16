"""Pydantic request/response schemas."""

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
    UsersListResponse,
)
from cadence.schemas.health import HealthResponse

__all__ = [
    "CurrentUser",
    "ForgotPasswordRequest",
    "HealthResponse",
    "LoginRequest",
    "LoginResponse",
    "MessageResponse",
    "RegisterRequest",
    "RegisterResponse",
    "ResetPasswordRequest",
    "ResetTokenValidResponse",
    "UserPublic",
    "UsersListResponse",
]
