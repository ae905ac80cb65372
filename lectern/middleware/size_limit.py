"""Reject request bodies larger than the configured limit."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from lectern.config import settings

logger = logging.getLogger(__name__)

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Answer 413 when a request body exceeds ``max_size``.

    Page images arrive base64-encoded in JSON, so a handful of scanned
    pages can be large. A declared Content-Length is checked before the
    body is read; chunked bodies without one are measured after reading.
    """

    def __init__(self, app, max_size: int | None = None):
        super().__init__(app)
        self.max_size = max_size or settings.max_request_size_bytes

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                size = int(content_length)
            except ValueError:
                return await call_next(request)
        elif request.method in BODY_METHODS:
            # Read once; the cached body is replayed to the endpoint
            size = len(await request.body())
        else:
            return await call_next(request)

        if size > self.max_size:
            logger.warning(
                f"Rejected {request.method} {request.url.path}: "
                f"{size} bytes exceeds {self.max_size}"
            )
            return JSONResponse(
                status_code=413,
                content={"error": f"Request body exceeds maximum size of {self.max_size} bytes"},
            )

        return await call_next(request)
