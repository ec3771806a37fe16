"""Cadence: music-streaming backend, authentication and access control."""

__version__ = "0.1.0"
