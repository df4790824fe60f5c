"""Configuration package for the QuerySight query service"""

from .settings import get_settings, Settings

__all__ = ["get_settings", "Settings"]
