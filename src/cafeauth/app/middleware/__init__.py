"""HTTP middleware."""

from cafeauth.app.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
