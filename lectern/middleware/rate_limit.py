"""Rate limiting for the AI endpoints using SlowAPI."""

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from lectern.config import settings

logger = logging.getLogger(__name__)


def get_client_key(request: Request) -> str:
    """Key requests by the caller's user id when a front proxy supplies one, else by IP.

    Both AI endpoints are billed per call, so limits follow the person
    rather than the connection whenever that is known.
    """
    user_id = request.headers.get("x-user-id")
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_client_key,
    storage_uri=settings.rate_limit_storage_uri,
    default_limits=[f"{settings.rate_limit_general_per_minute}/minute"],
    headers_enabled=False,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_copilot():
    """Decorator for the ghost-text completion endpoint."""
    return limiter.limit(f"{settings.rate_limit_copilot_per_minute}/minute")


def rate_limit_extraction():
    """Decorator for the page transcription endpoint."""
    return limiter.limit(f"{settings.rate_limit_extraction_per_minute}/minute")
