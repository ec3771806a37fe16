"""Admin-only routes, gated by require_admin."""

from typing import Annotated

from fastapi import APIRouter, Depends

from cadence.api.auth import require_admin
from cadence.api.deps import get_auth_service
from cadence.schemas.auth import CurrentUser, UserPublic, UsersListResponse
from cadence.services.auth import AuthService

router = APIRouter()


@router.get("/users", response_model=UsersListResponse)
def list_users(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> UsersListResponse:
    """List all users (admin only)."""
    return UsersListResponse(
        users=[UserPublic.model_validate(u) for u in service.list_users()]
    )
