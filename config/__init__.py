"""Configuration module for the Aave state acquisition core."""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
