"""Utility modules for the Site Audit Engine."""

from .config import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
