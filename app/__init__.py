"""Core package for the MongoDB user directory."""

from __future__ import annotations

from .config import Settings, load_settings

__all__ = ["Settings", "load_settings"]
