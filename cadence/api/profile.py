"""Profile of the authenticated user."""

from typing import Annotated

from fastapi import APIRouter, Depends

from cadence.api.auth import get_current_user
from cadence.api.deps import get_auth_service
from cadence.schemas.auth import CurrentUser, UserPublic
from cadence.services.auth import AuthService

router = APIRouter()


@router.get("", response_model=UserPublic)
def get_profile(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> UserPublic:
    """Return the stored account for the token's user id; 404 if it no longer exists."""
    return UserPublic.model_validate(service.get_profile(current_user.id))
