"""API package for the QuerySight query service"""

from . import health, query

__all__ = ["health", "query"]
