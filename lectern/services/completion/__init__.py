"""Ghost-text completion for the editor."""

from lectern.services.completion.client import CompletionClient, CompletionResponse
from lectern.services.completion.engine import (
    CompletionEngine,
    CompletionSuggestion,
    split_next_word,
    strip_markdown,
)

__all__ = [
    "CompletionClient",
    "CompletionEngine",
    "CompletionResponse",
    "CompletionSuggestion",
    "split_next_word",
    "strip_markdown",
]
