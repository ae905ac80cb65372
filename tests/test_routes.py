"""Tests for API routes."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from lectern.exceptions import CompletionRequestError, ProviderNotConfiguredError
from lectern.services.ai.copilot import CopilotResult
from lectern.services.ai.extraction import ImageDownloadError


@pytest.fixture
def client():
    from main import app

    return TestClient(app)


def fake_stream(*chunks, error=None):
    async def stream(images, user_id=None):
        for chunk in chunks:
            yield chunk
        if error is not None:
            raise error

    return stream


class TestHealthRoutes:
    """Tests for health routes."""

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "providers": ["gemini", "openai"]}


class TestCopilotRoute:
    """Tests for POST /api/ai/copilot."""

    def test_success(self, client):
        result = CopilotResult(
            text="mange.",
            provider="gemini",
            model="gemini-2.0-flash",
            input_tokens=40,
            output_tokens=3,
        )
        with patch("lectern.routes.ai.complete", AsyncMock(return_value=result)) as mock_complete:
            response = client.post(
                "/api/ai/copilot",
                json={"prompt": "Le chat", "model": "openai/gpt-4o", "system": "S"},
            )

        assert response.status_code == 200
        assert response.json() == {
            "text": "mange.",
            "provider": "gemini",
            "model": "gemini-2.0-flash",
            "usage": {"inputTokens": 40, "outputTokens": 3},
        }
        request = mock_complete.call_args.args[0]
        assert (request.prompt, request.model, request.system) == ("Le chat", "openai/gpt-4o", "S")

    def test_missing_prompt(self, client):
        response = client.post("/api/ai/copilot", json={"model": "x"})

        assert response.status_code == 422

    def test_no_credentials(self, client):
        with patch(
            "lectern.routes.ai.complete",
            AsyncMock(side_effect=ProviderNotConfiguredError("Missing AI API key.")),
        ):
            response = client.post("/api/ai/copilot", json={"prompt": "p"})

        assert response.status_code == 401
        assert response.json() == {"error": "Missing AI API key."}

    def test_aborted(self, client):
        with patch(
            "lectern.routes.ai.complete",
            AsyncMock(side_effect=CompletionRequestError("aborted", status_code=408)),
        ):
            response = client.post("/api/ai/copilot", json={"prompt": "p"})

        assert response.status_code == 408
        assert response.json() is None

    def test_failure(self, client):
        with patch(
            "lectern.routes.ai.complete",
            AsyncMock(
                side_effect=CompletionRequestError("AI request processing failed", status_code=500)
            ),
        ):
            response = client.post("/api/ai/copilot", json={"prompt": "p"})

        assert response.status_code == 500
        assert response.json() == {"error": "AI request processing failed"}


class TestExtractionRoute:
    """Tests for POST /api/extract-pdf."""

    def test_streams_transcription(self, client):
        with patch(
            "lectern.routes.extraction.stream_transcription",
            fake_stream("<p>", "A", "</p>"),
        ):
            response = client.post("/api/extract-pdf", json={"images": ["aW1n"]})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "<p>A</p>"

    def test_downloads_image_urls(self, client):
        captured = {}

        async def stream(images, user_id=None):
            captured["images"] = images
            yield "ok"

        with (
            patch(
                "lectern.routes.extraction.download_images",
                AsyncMock(return_value=["cmVtb3Rl"]),
            ) as mock_download,
            patch("lectern.routes.extraction.stream_transcription", stream),
        ):
            response = client.post(
                "/api/extract-pdf",
                json={"images": ["bG9jYWw="], "imageUrls": ["https://cdn.test/a.png"]},
            )

        assert response.status_code == 200
        mock_download.assert_awaited_once_with(["https://cdn.test/a.png"])
        assert captured["images"] == ["bG9jYWw=", "cmVtb3Rl"]

    def test_no_images(self, client):
        response = client.post("/api/extract-pdf", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "No images provided"}

    def test_unreachable_url(self, client):
        with patch(
            "lectern.routes.extraction.download_images",
            AsyncMock(side_effect=ImageDownloadError("https://cdn.test/a.png", "status 404")),
        ):
            response = client.post(
                "/api/extract-pdf", json={"imageUrls": ["https://cdn.test/a.png"]}
            )

        assert response.status_code == 400
        assert "https://cdn.test/a.png" in response.json()["error"]

    def test_no_credentials(self, client):
        with patch(
            "lectern.routes.extraction.stream_transcription",
            fake_stream(error=ProviderNotConfiguredError("Missing AI API key.")),
        ):
            response = client.post("/api/extract-pdf", json={"images": ["aW1n"]})

        assert response.status_code == 401

    def test_failure_before_first_chunk(self, client):
        with patch(
            "lectern.routes.extraction.stream_transcription",
            fake_stream(error=RuntimeError("model unavailable")),
        ):
            response = client.post("/api/extract-pdf", json={"images": ["aW1n"]})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to extract content"}


class TestOriginCheck:
    """Cross-site POSTs are refused."""

    def test_foreign_origin_rejected(self, client):
        response = client.post(
            "/api/ai/copilot",
            json={"prompt": "p"},
            headers={"origin": "https://evil.example"},
        )

        assert response.status_code == 403


class TestDatabaseHealth:
    """GET /api/health/db reports database reachability."""

    @pytest.fixture
    def db_client(self):
        from lectern.database import get_db
        from main import app

        session = AsyncMock()

        async def override():
            yield session

        app.dependency_overrides[get_db] = override
        yield TestClient(app), session
        app.dependency_overrides.clear()

    def test_healthy(self, db_client):
        client, session = db_client

        response = client.get("/api/health/db")

        assert response.status_code == 200
        session.scalar.assert_awaited_once()

    def test_unreachable(self, db_client):
        client, session = db_client
        session.scalar.side_effect = ConnectionRefusedError("no route to host")

        response = client.get("/api/health/db")

        assert response.status_code == 503
        assert "no route to host" in response.json()["detail"]
