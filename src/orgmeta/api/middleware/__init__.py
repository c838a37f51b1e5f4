"""API middleware package."""

from src.orgmeta.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
