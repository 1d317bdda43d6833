"""Configuration module for rediscache."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
