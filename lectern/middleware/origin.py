"""Reject state-changing requests sent from foreign browser origins."""

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from lectern.config import settings

STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "DELETE", "PATCH"})


class OriginCheckMiddleware(BaseHTTPMiddleware):
    """403 for writes whose Origin header is outside the CORS allow-list."""

    def __init__(self, app, allowed_origins: list[str] | None = None):
        super().__init__(app)
        self.allowed_origins = set(
            allowed_origins if allowed_origins is not None else settings.cors_origins
        )

    async def dispatch(self, request: Request, call_next):
        if request.method in STATE_CHANGING_METHODS:
            origin = request.headers.get("origin")
            # No Origin header: same-origin or non-browser client
            if origin and origin not in self.allowed_origins:
                return JSONResponse(status_code=403, content={"error": "Invalid origin"})
        return await call_next(request)
