"""Turn an uploaded source into blocks committed to a target document.

Pages are processed strictly one after another: classify, then either
convert the text layer directly or rasterize, transcribe and convert. Page
results accumulate in memory and are inserted in one step only when every
page succeeded; any failure aborts the session and leaves the document
untouched.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import fitz  # PyMuPDF

from lectern.config import settings
from lectern.enums import ExtractionState, PageClassification
from lectern.exceptions import (
    ExtractionError,
    ExtractionFailedError,
    ExtractionInProgressError,
)
from lectern.services.document.blocks import Block, Document, Rule, heading
from lectern.services.document.classifier import classify_page
from lectern.services.document.converter import BlockTreeConverter
from lectern.services.document.lines import reconstruct_text
from lectern.services.document.pages import SourcePage, open_pdf, page_fragments
from lectern.services.document.rasterizer import rasterize_image, rasterize_page
from lectern.services.document.transcription import TranscriptionClient

logger = logging.getLogger(__name__)

PAGE_LABEL = "Page {number}"
IMAGE_LABEL = "Extracted content (image)"
LABEL_HEADING_LEVEL = 3


@dataclass(frozen=True)
class ExtractionProgress:
    current: int = 0
    total: int = 0


class ExtractionSession:
    """Extraction state for one target document.

    A session allows a single extraction in flight; separate sessions (one
    per document or editor) run independently.
    """

    def __init__(self, document: Document):
        self.document = document
        self.state = ExtractionState.IDLE
        self.progress = ExtractionProgress()
        self._task: asyncio.Task | None = None
        self._abort_requested = False

    @property
    def busy(self) -> bool:
        return self.state == ExtractionState.EXTRACTING

    def begin(self) -> None:
        if self.busy:
            raise ExtractionInProgressError("An extraction is already running for this document")
        self.state = ExtractionState.EXTRACTING
        self.progress = ExtractionProgress()
        self._abort_requested = False

    def abort(self) -> bool:
        """Cancel the in-flight extraction. Returns False if nothing was running."""
        if not self.busy:
            return False
        self._abort_requested = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        return True

    async def run(self, work: Awaitable[list[Block]]) -> list[Block]:
        self._task = asyncio.ensure_future(work)
        try:
            return await self._task
        finally:
            self._task = None

    @property
    def abort_requested(self) -> bool:
        return self._abort_requested


class DocumentAssembler:
    """Orchestrates classification, rasterization, transcription and conversion."""

    def __init__(
        self,
        transcription_client: TranscriptionClient | None = None,
        converter: BlockTreeConverter | None = None,
        raster_scale: float | None = None,
    ):
        self.transcription_client = transcription_client or TranscriptionClient()
        self.converter = converter or BlockTreeConverter()
        self.raster_scale = raster_scale or settings.raster_scale

    async def extract_pdf(
        self,
        session: ExtractionSession,
        content: bytes,
        focus_block_id: str | None = None,
    ) -> list[str]:
        """
        Extract every page of a PDF and commit the result.

        Args:
            session: Session of the target document
            content: Raw PDF bytes
            focus_block_id: Block focused when extraction started; content is
                inserted after it, or at the end of the document

        Returns:
            Identifiers of the inserted blocks

        Raises:
            ExtractionInProgressError: If the session is already extracting
            ExtractionFailedError: If any page failed or the session was aborted
        """
        return await self._run(session, lambda: self._extract_pages(session, content), focus_block_id)

    async def extract_image(
        self,
        session: ExtractionSession,
        content: bytes,
        mime_type: str,
        focus_block_id: str | None = None,
    ) -> list[str]:
        """Transcribe a standalone image and commit it under a fixed label."""
        return await self._run(
            session, lambda: self._extract_image(session, content, mime_type), focus_block_id
        )

    async def _run(
        self,
        session: ExtractionSession,
        work: Callable[[], Awaitable[list[Block]]],
        focus_block_id: str | None,
    ) -> list[str]:
        session.begin()
        document = session.document
        insertion_point = focus_block_id if focus_block_id in document else None

        try:
            nodes = await session.run(work())
        except asyncio.CancelledError:
            session.state = ExtractionState.ABORTED
            session.progress = ExtractionProgress()
            if session.abort_requested:
                logger.info("Extraction aborted by caller")
                raise ExtractionFailedError("Extraction was aborted") from None
            raise
        except Exception as e:
            session.state = ExtractionState.ABORTED
            session.progress = ExtractionProgress()
            logger.error(f"Extraction failed, discarding accumulated content: {e}")
            raise ExtractionFailedError(f"Extraction failed: {e}") from e

        inserted = document.insert_blocks(nodes, after=insertion_point)
        session.state = ExtractionState.COMMITTED
        session.progress = ExtractionProgress()
        logger.info(f"Committed {len(inserted)} blocks")
        return inserted

    async def _extract_pages(self, session: ExtractionSession, content: bytes) -> list[Block]:
        pages: list[tuple[int, list[Block]]] = []

        with open_pdf(content) as pdf:
            total = pdf.page_count
            for index in range(total):
                session.progress = ExtractionProgress(current=index + 1, total=total)
                page = pdf.load_page(index)
                blocks = await self._extract_page(page, index)
                if not blocks:
                    logger.warning(f"Page {index + 1}: no content extracted")
                pages.append((index + 1, blocks))

        return self._layout(pages)

    async def _extract_page(self, page: fitz.Page, index: int) -> list[Block]:
        text = reconstruct_text(page_fragments(page))
        source = SourcePage(
            index=index,
            raster_ref=page,
            extracted_text=text,
            classification=classify_page(text),
        )
        logger.info(f"Page {source.number}: {source.classification} ({len(text)} chars)")

        if source.classification == PageClassification.BORN_DIGITAL:
            return self.converter.from_text(source.extracted_text)

        render = asyncio.ensure_future(
            asyncio.to_thread(rasterize_page, source.raster_ref, self.raster_scale)
        )
        try:
            image = await asyncio.shield(render)
        except asyncio.CancelledError:
            # The PDF is closed on unwind; the render thread must let go of the page first
            await asyncio.gather(render, return_exceptions=True)
            raise
        result = await self.transcription_client.transcribe([image])
        return self.converter.to_blocks(result.text)

    async def _extract_image(
        self, session: ExtractionSession, content: bytes, mime_type: str
    ) -> list[Block]:
        image = rasterize_image(content, mime_type)
        session.progress = ExtractionProgress(current=1, total=1)

        result = await self.transcription_client.transcribe([image])
        blocks = self.converter.to_blocks(result.text)
        if not blocks:
            raise ExtractionError("Transcription returned no content")

        return [heading(IMAGE_LABEL, level=LABEL_HEADING_LEVEL), *blocks]

    def _layout(self, pages: list[tuple[int, list[Block]]]) -> list[Block]:
        """Page label, page content, and a rule between consecutive pages."""
        with_content = [(number, blocks) for number, blocks in pages if blocks]
        nodes: list[Block] = []
        for position, (number, blocks) in enumerate(with_content):
            nodes.append(heading(PAGE_LABEL.format(number=number), level=LABEL_HEADING_LEVEL))
            nodes.extend(blocks)
            if position < len(with_content) - 1:
                nodes.append(Rule())
        return nodes
