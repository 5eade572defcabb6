"""Core module for the short-link engine."""

from shortlink.core.config import Settings, settings

__all__ = ["Settings", "settings"]
