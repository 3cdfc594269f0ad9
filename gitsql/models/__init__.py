"""Data models for gitsql."""

from gitsql.models.settings import ResolutionPolicy, Settings

__all__ = [
    "ResolutionPolicy",
    "Settings",
]
