"""Core app configuration, database and security primitives."""

from cadence.core.config import get_settings, settings
from cadence.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]
