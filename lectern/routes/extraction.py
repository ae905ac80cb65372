"""Page transcription endpoint: images in, streamed HTML out."""

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from lectern.exceptions import ProviderNotConfiguredError
from lectern.middleware.rate_limit import rate_limit_extraction
from lectern.services.ai.extraction import (
    ImageDownloadError,
    download_images,
    stream_transcription,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class ExtractionBody(BaseModel):
    images: list[str] = Field(default_factory=list)
    image_urls: list[str] = Field(default_factory=list, alias="imageUrls")

    model_config = {"populate_by_name": True}


async def _prepend(first: str, rest: AsyncIterator[str]) -> AsyncIterator[str]:
    yield first
    async for chunk in rest:
        yield chunk


@router.post("/extract-pdf")
@rate_limit_extraction()
async def extract_pdf(request: Request, body: ExtractionBody):
    """Transcribe page images into HTML, streamed as plain text."""
    images = [image for image in body.images if image]

    if body.image_urls:
        try:
            images.extend(await download_images(body.image_urls))
        except ImageDownloadError as e:
            logger.warning(str(e))
            return JSONResponse(status_code=400, content={"error": str(e)})

    if not images:
        return JSONResponse(status_code=400, content={"error": "No images provided"})

    # Pull the first chunk here so setup failures still get a status code
    stream = stream_transcription(images, user_id=request.headers.get("x-user-id"))
    try:
        first = await anext(stream)
    except StopAsyncIteration:
        return StreamingResponse(iter(()), media_type="text/plain; charset=utf-8")
    except ProviderNotConfiguredError as e:
        return JSONResponse(status_code=401, content={"error": str(e)})
    except Exception as e:
        logger.error(f"Extraction failed before streaming: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to extract content"})

    return StreamingResponse(_prepend(first, stream), media_type="text/plain; charset=utf-8")
