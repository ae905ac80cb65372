"""Middleware components for request validation and protection."""

from lectern.middleware.origin import OriginCheckMiddleware
from lectern.middleware.rate_limit import get_client_key, limiter
from lectern.middleware.size_limit import RequestSizeLimitMiddleware

__all__ = [
    "OriginCheckMiddleware",
    "RequestSizeLimitMiddleware",
    "get_client_key",
    "limiter",
]
