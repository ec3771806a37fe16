"""Liveness check: database reachability and reset-token backlog."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cadence import __version__
from cadence.api.deps import get_reset_token_store
from cadence.core.config import settings
from cadence.core.database import check_db_connected, get_db
from cadence.schemas.health import HealthResponse
from cadence.services.reset_tokens import InMemoryResetTokenStore

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(
    db: Annotated[Session, Depends(get_db)],
    reset_tokens: Annotated[InMemoryResetTokenStore, Depends(get_reset_token_store)],
) -> HealthResponse:
    """Always 200; an unreachable database reports status "degraded"."""
    connected = check_db_connected(db)
    return HealthResponse(
        status="ok" if connected else "degraded",
        version=__version__,
        environment=settings.APP_ENV,
        database="connected" if connected else "disconnected",
        pending_reset_tokens=len(reset_tokens),
    )
