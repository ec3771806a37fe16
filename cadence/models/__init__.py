"""SQLAlchemy ORM models."""

from cadence.models.base import Base
from cadence.models.user import User

__all__ = ["Base", "User"]
