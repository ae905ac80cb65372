"""Reading-order line reconstruction from a page's text layer."""

from collections.abc import Iterable
from dataclasses import dataclass, field

# Fragments whose baselines are this close (layout units) share a line
LINE_TOLERANCE = 2.5


@dataclass(frozen=True)
class TextFragment:
    """A positioned piece of text from a born-digital page.

    ``y`` is in PDF user space: it grows towards the top of the page.
    """

    text: str
    y: float
    x: float | None = None


@dataclass
class _LineCluster:
    y: float
    parts: list[str] = field(default_factory=list)


def reconstruct_lines(
    fragments: Iterable[TextFragment],
    tolerance: float = LINE_TOLERANCE,
) -> list[str]:
    """
    Cluster fragments into lines, top of page first.

    A fragment joins the first cluster whose representative ``y`` (that of
    the fragment which opened it) is within ``tolerance``. Parts of a line
    are joined in encounter order, not by horizontal position.

    Args:
        fragments: Text fragments in the order the text layer yields them
        tolerance: Maximum vertical distance to an existing line

    Returns:
        Line strings ordered by descending ``y``
    """
    clusters: list[_LineCluster] = []

    for fragment in fragments:
        text = (fragment.text or "").strip()
        if not text:
            continue

        existing = next((c for c in clusters if abs(c.y - fragment.y) <= tolerance), None)
        if existing is not None:
            existing.parts.append(text)
        else:
            clusters.append(_LineCluster(y=fragment.y, parts=[text]))

    clusters.sort(key=lambda c: c.y, reverse=True)
    return [" ".join(c.parts) for c in clusters]


def reconstruct_text(fragments: Iterable[TextFragment], tolerance: float = LINE_TOLERANCE) -> str:
    """Reconstructed lines joined with newlines."""
    return "\n".join(reconstruct_lines(fragments, tolerance)).strip()
