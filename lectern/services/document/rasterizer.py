"""Page and image rasterization for transcription."""

import base64
import logging
from dataclasses import dataclass

import fitz  # PyMuPDF

from lectern.config import settings

logger = logging.getLogger(__name__)

# Upscale factor keeping small print legible for OCR
PAGE_RASTER_SCALE = 2.0


@dataclass(frozen=True)
class RasterImage:
    """An encoded bitmap ready to be sent to the transcription backend."""

    data: bytes
    mime_type: str = "image/png"
    width: int | None = None
    height: int | None = None

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")


def rasterize_page(page: fitz.Page, scale: float = PAGE_RASTER_SCALE) -> RasterImage:
    """Render a PDF page to PNG at ``scale`` times its natural size."""
    pixmap = page.get_pixmap(matrix=fitz.Matrix(scale, scale))
    logger.debug(f"Rasterized page {page.number + 1} to {pixmap.width}x{pixmap.height}")
    return RasterImage(
        data=pixmap.tobytes("png"),
        mime_type="image/png",
        width=pixmap.width,
        height=pixmap.height,
    )


def rasterize_image(content: bytes, mime_type: str) -> RasterImage:
    """
    Wrap a standalone image for transport without re-encoding it.

    Raises:
        ValueError: If the content is not an image or exceeds the size limit
    """
    if not mime_type.startswith("image/"):
        raise ValueError(f"Not an image: {mime_type}")
    if not content:
        raise ValueError("Image is empty")
    if len(content) > settings.max_image_size_bytes:
        raise ValueError(
            f"Image exceeds size limit: "
            f"{len(content) / 1024 / 1024:.1f}MB > "
            f"{settings.max_image_size_bytes / 1024 / 1024:.0f}MB"
        )

    # Normalize non-standard mime type
    if mime_type == "image/jpg":
        mime_type = "image/jpeg"

    return RasterImage(data=content, mime_type=mime_type)
