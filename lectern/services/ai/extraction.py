"""Backend side of page transcription: stream a model's HTML for images."""

import base64
import logging
from collections.abc import AsyncIterator, Sequence

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from lectern.config import settings
from lectern.enums import ServiceType, UsageStatus
from lectern.exceptions import ProviderNotConfiguredError
from lectern.services.ai.ai_config import get_ai_config_with_fallback
from lectern.services.ai.generation import stream_image_transcription
from lectern.services.ai.prompts import TRANSCRIPTION_SYSTEM_PROMPT
from lectern.services.ai.providers import available_keys, resolve_provider
from lectern.services.ai.usage import UsageLogEntry, UsageRecorder, get_usage_recorder
from lectern.services.posthog import LLMTimer

logger = logging.getLogger(__name__)


class ImageDownloadError(ValueError):
    """A remote image could not be fetched."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Unable to download image: {url} ({reason})")
        self.url = url


@retry(
    retry=retry_if_exception_type(httpx.TransportError),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    stop=stop_after_attempt(3),
    reraise=True,
)
async def _fetch(client: httpx.AsyncClient, url: str) -> httpx.Response:
    return await client.get(url, follow_redirects=True)


async def download_images(
    urls: Sequence[str],
    http_client: httpx.AsyncClient | None = None,
) -> list[str]:
    """
    Download remote images and return them base64-encoded.

    Raises:
        ImageDownloadError: If any URL answers non-2xx or stays unreachable
    """
    images: list[str] = []
    client = http_client or httpx.AsyncClient(timeout=settings.image_download_timeout_seconds)
    try:
        for url in urls:
            if not isinstance(url, str) or not url:
                continue
            try:
                response = await _fetch(client, url)
            except httpx.HTTPError as e:
                raise ImageDownloadError(url, str(e)) from e
            if not response.is_success:
                raise ImageDownloadError(url, f"status {response.status_code}")
            if len(response.content) > settings.max_image_size_bytes:
                raise ImageDownloadError(url, "image too large")
            images.append(base64.b64encode(response.content).decode("utf-8"))
    finally:
        if http_client is None:
            await client.aclose()
    return images


async def stream_transcription(
    images_base64: Sequence[str],
    recorder: UsageRecorder | None = None,
    user_id: str | None = None,
) -> AsyncIterator[str]:
    """
    Stream the transcription of images and record the call once drained.

    Raises:
        ProviderNotConfiguredError: If no provider credential is configured
    """
    keys = available_keys()
    if not keys:
        raise ProviderNotConfiguredError(
            "Missing AI API key. Set GOOGLE_GENERATIVE_AI_API_KEY or OPENAI_API_KEY."
        )

    recorder = recorder or get_usage_recorder()
    config = await get_ai_config_with_fallback(ServiceType.EXTRACTION)
    resolved = resolve_provider(
        None,
        config.provider,
        keys,
        service_defaults={config.provider: config.model_name},
    )
    logger.info(
        f"Extraction request: {len(images_base64)} image(s), "
        f"provider={resolved.provider} model={resolved.model}"
    )

    metadata = {"imageCount": len(images_base64)}
    output_chars = 0
    timer = LLMTimer()
    with timer:
        try:
            async for chunk in stream_image_transcription(
                resolved.provider,
                resolved.model,
                images_base64,
                system=TRANSCRIPTION_SYSTEM_PROMPT,
                temperature=config.temperature,
                max_tokens=config.max_output_tokens,
            ):
                output_chars += len(chunk)
                yield chunk
        except Exception as e:
            logger.error(f"Extraction stream failed: {e}")
            await recorder.record(
                UsageLogEntry(
                    service_type=ServiceType.EXTRACTION,
                    provider=resolved.provider,
                    model_name=resolved.model,
                    status=UsageStatus.ERROR,
                    processing_time_ms=int(timer.elapsed_ms),
                    error_message=str(e),
                    user_id=user_id,
                    metadata=metadata,
                )
            )
            raise

    await recorder.record(
        UsageLogEntry(
            service_type=ServiceType.EXTRACTION,
            provider=resolved.provider,
            model_name=resolved.model,
            status=UsageStatus.SUCCESS,
            processing_time_ms=int(timer.elapsed_ms),
            user_id=user_id,
            metadata={**metadata, "outputChars": output_chars},
        )
    )
