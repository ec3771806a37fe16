"""HTTP routes."""

from fastapi import APIRouter, Depends

from cadence.api import admin, auth, health, profile
from cadence.api.deps import enforce_rate_limit

router = APIRouter(dependencies=[Depends(enforce_rate_limit)])
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(profile.router, prefix="/profile", tags=["profile"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])
