"""Health check payload."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    version: str
    environment: str
    database: Literal["connected", "disconnected"]
    pending_reset_tokens: int = Field(ge=0, description="Live entries in the reset-token store")
