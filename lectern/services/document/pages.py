"""Source page access for multi-page documents."""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import fitz  # PyMuPDF

from lectern.enums import PageClassification
from lectern.services.document.lines import TextFragment


@dataclass
class SourcePage:
    """One page of an uploaded document while it is being extracted."""

    index: int
    raster_ref: fitz.Page
    extracted_text: str
    classification: PageClassification

    @property
    def number(self) -> int:
        return self.index + 1


@contextmanager
def open_pdf(content: bytes) -> Iterator[fitz.Document]:
    """Open PDF bytes, raising ValueError for unreadable input."""
    try:
        doc = fitz.open(stream=content, filetype="pdf")
    except (fitz.FileDataError, RuntimeError) as e:
        raise ValueError(f"Unreadable PDF: {e}") from e
    try:
        yield doc
    finally:
        doc.close()


def page_fragments(page: fitz.Page) -> list[TextFragment]:
    """Read the page's text layer as positioned fragments.

    PyMuPDF measures ``y`` downwards from the top edge; fragments are flipped
    into PDF user space so that larger ``y`` means higher on the page.
    """
    height = page.rect.height
    fragments: list[TextFragment] = []

    for block in page.get_text("dict").get("blocks", []):
        if block.get("type") != 0:
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                x, y = span["origin"]
                fragments.append(TextFragment(text=span.get("text", ""), y=height - y, x=x))

    return fragments
