"""Born-digital vs scanned page classification."""

from lectern.enums import PageClassification

# Pages with less reconstructed text than this are treated as image-only
BORN_DIGITAL_MIN_CHARS = 40


def classify_page(extracted_text: str) -> PageClassification:
    """Classify a page from the text reconstructed out of its text layer."""
    if len(extracted_text) >= BORN_DIGITAL_MIN_CHARS:
        return PageClassification.BORN_DIGITAL
    return PageClassification.SCANNED
