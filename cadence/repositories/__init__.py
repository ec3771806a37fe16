"""Persistence adapters."""

from cadence.repositories.users import DuplicateKey, UserNotFound, UserRepository

__all__ = ["DuplicateKey", "UserNotFound", "UserRepository"]
