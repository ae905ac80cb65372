"""Client for the transcription backend (streamed OCR of rasterized pages)."""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from lectern.config import settings
from lectern.exceptions import TranscriptionError
from lectern.services.document.rasterizer import RasterImage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    ok: bool = True


class TranscriptionClient:
    """Send rasterized images to the transcription endpoint and drain its stream.

    One request carries every image of a unit of work (a page or a standalone
    image). The client does not record usage; the backend does.
    """

    def __init__(
        self,
        url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self.url = url or settings.transcription_url
        self.timeout = timeout or settings.transcription_timeout_seconds
        self._http_client = http_client

    @asynccontextmanager
    async def _client(self):
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def iter_chunks(self, images: Sequence[RasterImage]) -> AsyncIterator[str]:
        """
        Yield decoded text chunks of the response body as they arrive.

        Raises:
            TranscriptionError: On a non-2xx response
        """
        payload = {"images": [image.to_base64() for image in images]}

        async with self._client() as client:
            async with client.stream("POST", self.url, json=payload) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise TranscriptionError(
                        f"Transcription failed with status {response.status_code}: {body[:200]}",
                        status_code=response.status_code,
                    )
                async for chunk in response.aiter_text():
                    yield chunk

    async def transcribe(self, images: Sequence[RasterImage]) -> TranscriptionResult:
        """
        Transcribe images, returning the fully drained body.

        Args:
            images: Bitmaps belonging to one unit of work

        Returns:
            TranscriptionResult with the concatenated text

        Raises:
            TranscriptionError: On a non-2xx response or a network failure
        """
        if not images:
            raise ValueError("No images to transcribe")

        parts: list[str] = []
        try:
            async for chunk in self.iter_chunks(images):
                parts.append(chunk)
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Transcription request failed: {e}") from e

        text = "".join(parts)
        logger.info(f"Transcribed {len(images)} image(s) into {len(text)} chars")
        return TranscriptionResult(text=text, ok=True)
