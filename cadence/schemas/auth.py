"""Request/response schemas for auth, profile and admin endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """New account details. Length policy is enforced by the auth service."""

    username: str = Field(..., max_length=255, description="Username")
    email: str = Field(..., max_length=255, description="Email address")
    password: str = Field(..., max_length=1024, description="Password (8-128 characters)")


class LoginRequest(BaseModel):
    """Credentials for login; username may also be the account email."""

    username: str = Field(..., min_length=1, max_length=255, description="Username or email")
    password: str = Field(..., min_length=1, max_length=1024, description="Password")


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., max_length=1024, description="Account email address")


class ResetPasswordRequest(BaseModel):
    token: str = Field(default="", max_length=1024)
    new_password: str = Field(default="", max_length=1024)
    confirm_password: str = Field(default="", max_length=1024)


class UserPublic(BaseModel):
    """Outward view of a user. The password hash is never part of it."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    is_admin: bool
    profile_image_path: str | None = None
    created_at: datetime | None = None
    last_login: datetime | None = None


class RegisterResponse(BaseModel):
    message: str = "user registered successfully"
    user: UserPublic


class LoginResponse(BaseModel):
    """Session token returned after successful login."""

    token: str = Field(..., description="Session token; send as 'Authorization: Bearer <token>'")
    token_type: str = Field(default="bearer", description="Token type")
    user: UserPublic


class MessageResponse(BaseModel):
    message: str


class ResetTokenValidResponse(BaseModel):
    email: str


class CurrentUser(BaseModel):
    """Identity taken from a validated session token, attached to the request."""

    id: int
    username: str
    is_admin: bool


class UsersListResponse(BaseModel):
    """Response for GET /admin/users (admin only)."""

    users: list[UserPublic]
