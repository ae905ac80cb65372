"""Tests for the origin check middleware."""

import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
from starlette.testclient import TestClient

from lectern.middleware.origin import OriginCheckMiddleware


async def echo(request: Request) -> Response:
    return JSONResponse({"method": request.method})


@pytest.fixture
def client():
    app = Starlette(routes=[Route("/api/ai/copilot", echo, methods=["GET", "POST"])])
    app.add_middleware(OriginCheckMiddleware, allowed_origins=["https://editor.example"])
    return TestClient(app)


class TestOriginCheckMiddleware:
    def test_allowed_origin_passes(self, client):
        response = client.post(
            "/api/ai/copilot", headers={"origin": "https://editor.example"}
        )

        assert response.status_code == 200

    def test_foreign_origin_rejected(self, client):
        response = client.post("/api/ai/copilot", headers={"origin": "https://evil.example"})

        assert response.status_code == 403
        assert response.json() == {"error": "Invalid origin"}

    def test_missing_origin_passes(self, client):
        assert client.post("/api/ai/copilot").status_code == 200

    def test_reads_are_not_checked(self, client):
        response = client.get("/api/ai/copilot", headers={"origin": "https://evil.example"})

        assert response.status_code == 200
