"""Tests for request size limit middleware."""

import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
from starlette.testclient import TestClient

from lectern.middleware.size_limit import RequestSizeLimitMiddleware


async def page_upload(request: Request) -> Response:
    """Stand-in for the transcription endpoint."""
    body = await request.body()
    return JSONResponse({"size": len(body)})


@pytest.fixture
def client():
    app = Starlette(routes=[Route("/api/extract-pdf", page_upload, methods=["POST"])])
    app.add_middleware(RequestSizeLimitMiddleware, max_size=1024)
    return TestClient(app, raise_server_exceptions=False)


class TestRequestSizeLimitMiddleware:
    """Tests for RequestSizeLimitMiddleware."""

    def test_allows_body_up_to_limit(self, client):
        response = client.post("/api/extract-pdf", content="x" * 1024)

        assert response.status_code == 200
        assert response.json()["size"] == 1024

    def test_rejects_oversized_body(self, client):
        response = client.post("/api/extract-pdf", content="x" * 2048)

        assert response.status_code == 413
        assert "exceeds maximum size" in response.json()["error"]

    def test_rejects_oversized_chunked_body(self, client):
        chunks = (b"x" * 512 for _ in range(4))

        response = client.post("/api/extract-pdf", content=chunks)

        assert response.status_code == 413

    def test_chunked_body_within_limit_reaches_endpoint(self, client):
        chunks = (b"x" * 256 for _ in range(2))

        response = client.post("/api/extract-pdf", content=chunks)

        assert response.status_code == 200
        assert response.json()["size"] == 512

    def test_default_limit_from_settings(self):
        from lectern.config import settings

        middleware = RequestSizeLimitMiddleware(app=None)

        assert middleware.max_size == settings.max_request_size_bytes
