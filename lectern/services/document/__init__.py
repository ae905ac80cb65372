"""Document ingestion: block tree, line reconstruction, transcription, assembly."""

from lectern.services.document.assembler import (
    DocumentAssembler,
    ExtractionProgress,
    ExtractionSession,
)
from lectern.services.document.blocks import Block, BlockKind, Cursor, Document, InlineRun
from lectern.services.document.classifier import BORN_DIGITAL_MIN_CHARS, classify_page
from lectern.services.document.converter import BlockTreeConverter, to_blocks
from lectern.services.document.lines import TextFragment, reconstruct_lines, reconstruct_text
from lectern.services.document.rasterizer import RasterImage, rasterize_image, rasterize_page
from lectern.services.document.transcription import TranscriptionClient, TranscriptionResult

__all__ = [
    "BORN_DIGITAL_MIN_CHARS",
    "Block",
    "BlockKind",
    "BlockTreeConverter",
    "Cursor",
    "Document",
    "DocumentAssembler",
    "ExtractionProgress",
    "ExtractionSession",
    "InlineRun",
    "RasterImage",
    "TextFragment",
    "TranscriptionClient",
    "TranscriptionResult",
    "classify_page",
    "rasterize_image",
    "rasterize_page",
    "reconstruct_lines",
    "reconstruct_text",
    "to_blocks",
]
