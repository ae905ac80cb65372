"""Ghost-text completion loop.

Edits restart a debounce timer; when it settles the block under the cursor
is sent for a continuation, and the answer is shown as uncommitted ghost
text until it is accepted, partially accepted, rejected or superseded.
At most one request is in flight and at most one suggestion is pending or
shown at any time; answers to superseded requests are dropped.
"""

import asyncio
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from lectern.config import settings
from lectern.enums import EngineState, Provider, ServiceType, SuggestionState, UsageStatus
from lectern.services.ai.ai_config import AI_DEFAULTS
from lectern.services.ai.prompts import (
    COPILOT_SYSTEM_PROMPT,
    NO_SUGGESTION_SENTINEL,
    build_continuation_prompt,
)
from lectern.services.ai.providers import resolve_provider
from lectern.services.ai.usage import UsageLogEntry, UsageRecorder, get_usage_recorder
from lectern.services.completion.client import CompletionClient, CompletionResponse
from lectern.services.document.blocks import (
    Cursor,
    Document,
    Heading,
    Paragraph,
    Quote,
    needs_separator,
    to_markdown,
)
from lectern.services.posthog import LLMTimer

logger = logging.getLogger(__name__)

ACCEPT_KEY = "tab"
ACCEPT_NEXT_WORD_KEY = "mod+right"
REJECT_KEY = "escape"
TRIGGER_KEY = "ctrl+space"

_NEXT_WORD = re.compile(r"^(\s*\S+\s*)(.*)$", re.DOTALL)
_MARKDOWN_RULES = (
    (re.compile(r"^\s{0,3}(#{1,6}\s+|>\s?|[-*+]\s+|\d+[.)]\s+)"), ""),
    (re.compile(r"!?\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"(\*\*|__)(.+?)\1"), r"\2"),
    (re.compile(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])"), r"\1"),
    (re.compile(r"(?<!\w)_(?!\s)(.+?)(?<!\s)_(?!\w)"), r"\1"),
    (re.compile(r"~~(.+?)~~"), r"\1"),
    (re.compile(r"`([^`]*)`"), r"\1"),
)


def strip_markdown(text: str) -> str:
    """Remove light markdown syntax a model may add around a continuation."""
    for pattern, replacement in _MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    return text.replace('"""', "")


def split_next_word(text: str) -> tuple[str, str]:
    """Split off the leading word together with the whitespace following it."""
    match = _NEXT_WORD.match(text)
    if not match:
        return text, ""
    return match.group(1), match.group(2)


@dataclass
class CompletionSuggestion:
    text: str
    state: SuggestionState = SuggestionState.PENDING


class CompletionEngine:
    """Debounced, cancellable, single-flight ghost-text suggestions for one editor."""

    def __init__(
        self,
        document: Document,
        client: CompletionClient | None = None,
        recorder: UsageRecorder | None = None,
        debounce_ms: int | None = None,
        model: str | None = None,
        provider: Provider | None = None,
        system_prompt: str = COPILOT_SYSTEM_PROMPT,
    ):
        self.document = document
        self.client = client or CompletionClient()
        self.recorder = recorder
        self.debounce_seconds = (
            debounce_ms if debounce_ms is not None else settings.completion_debounce_ms
        ) / 1000
        self.model = model
        self.provider = provider
        self.system_prompt = system_prompt

        self.cursor: Cursor | None = None
        self.state = EngineState.IDLE
        self.suggestion: CompletionSuggestion | None = None
        self._task: asyncio.Task | None = None
        self._generation = 0

        self.key_bindings: dict[str, Callable[[], bool]] = {
            ACCEPT_KEY: self.accept,
            ACCEPT_NEXT_WORD_KEY: self.accept_next_word,
            REJECT_KEY: self.reject,
            TRIGGER_KEY: self.trigger,
        }

    # --- Events ----------------------------------------------------------

    def set_cursor(self, cursor: Cursor | None) -> None:
        self.cursor = cursor

    def on_edit(self, cursor: Cursor | None = None) -> None:
        """A qualifying edit: drop any suggestion and restart the debounce."""
        if cursor is not None:
            self.cursor = cursor
        self._discard(SuggestionState.SUPERSEDED)
        self._schedule(self.debounce_seconds)

    def trigger(self) -> bool:
        """Request a suggestion now, bypassing the debounce."""
        self._discard(SuggestionState.SUPERSEDED)
        self._schedule(0)
        return True

    def accept(self) -> bool:
        """Commit the whole shown suggestion at the cursor."""
        suggestion = self._shown()
        if suggestion is None:
            return False

        self._commit(suggestion.text)
        suggestion.state = SuggestionState.ACCEPTED
        self.suggestion = None
        self.state = EngineState.IDLE
        return True

    def accept_next_word(self) -> bool:
        """Commit the leading word and keep showing the remainder, if any."""
        suggestion = self._shown()
        if suggestion is None:
            return False

        word, remainder = split_next_word(suggestion.text)
        self._commit(word)
        suggestion.state = SuggestionState.PARTIALLY_ACCEPTED

        if remainder.strip():
            self.suggestion = CompletionSuggestion(text=remainder, state=SuggestionState.SHOWN)
            self.state = EngineState.SHOWN
        else:
            self.suggestion = None
            self.state = EngineState.IDLE
        return True

    def reject(self) -> bool:
        """Discard the suggestion, cancelling a pending request if needed."""
        if self.state == EngineState.IDLE:
            return False
        self._discard(SuggestionState.REJECTED)
        self.state = EngineState.IDLE
        return True

    def handle_key(self, key: str) -> bool:
        """Dispatch a shortcut. Returns False when the key was not consumed."""
        handler = self.key_bindings.get(key.lower())
        if handler is None:
            return False
        return handler()

    async def wait(self) -> None:
        """Wait for the current debounce/request cycle to finish."""
        task = self._task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel any pending work, e.g. when the editor is torn down."""
        task = self._task
        self._discard(SuggestionState.SUPERSEDED)
        self.state = EngineState.IDLE
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    # --- Internals -------------------------------------------------------

    def _shown(self) -> CompletionSuggestion | None:
        if self.state != EngineState.SHOWN or self.suggestion is None:
            return None
        return self.suggestion

    def _discard(self, outcome: SuggestionState) -> None:
        """Cancel any in-flight cycle and end the current suggestion."""
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        if self.suggestion is not None:
            self.suggestion.state = outcome
            self.suggestion = None

    def _schedule(self, delay: float) -> None:
        self.state = EngineState.DEBOUNCING
        self._task = asyncio.ensure_future(self._cycle(delay, self._generation))

    def _build_prompt(self) -> str:
        if self.cursor is None or self.cursor.block_id not in self.document:
            return ""
        block = self.document.get(self.cursor.block_id)
        if not isinstance(block, (Paragraph, Heading, Quote)):
            return ""
        context = to_markdown(block)
        if not context.strip():
            return ""
        return build_continuation_prompt(context)

    async def _cycle(self, delay: float, generation: int) -> None:
        if delay:
            await asyncio.sleep(delay)

        prompt = self._build_prompt()
        if not prompt:
            self.state = EngineState.IDLE
            return

        self.state = EngineState.REQUESTING
        self.suggestion = CompletionSuggestion(text="")
        timer = LLMTimer()

        try:
            with timer:
                response = await self.client.complete(
                    prompt,
                    system=self.system_prompt,
                    model=self.model,
                    provider=str(self.provider) if self.provider else None,
                )
        except asyncio.CancelledError:
            await self._record_failure(UsageStatus.TIMEOUT, timer.elapsed_ms, "Request superseded")
            raise
        except Exception as e:
            logger.warning(f"Completion failed: {e}")
            await self._record_failure(UsageStatus.ERROR, timer.elapsed_ms, str(e))
            if generation == self._generation:
                self._reset()
            return

        if generation != self._generation:
            return
        self._show(response)

    def _show(self, response: CompletionResponse) -> None:
        text = response.text.strip()
        if text == NO_SUGGESTION_SENTINEL:
            self._reset()
            return

        text = strip_markdown(response.text).rstrip()
        if not text.strip():
            self._reset()
            return

        self.suggestion = CompletionSuggestion(text=text, state=SuggestionState.SHOWN)
        self.state = EngineState.SHOWN

    def _reset(self) -> None:
        self.suggestion = None
        self.state = EngineState.IDLE

    def _commit(self, text: str) -> None:
        if self.cursor is None or not text:
            return
        before = self.document.text_of(self.cursor.block_id)[: self.cursor.offset]
        if needs_separator(before, text.lstrip()) and not text[0].isspace():
            text = " " + text
        self.cursor = self.document.insert_text(self.cursor, text)

    async def _record_failure(self, status: UsageStatus, elapsed_ms: float, message: str) -> None:
        defaults = AI_DEFAULTS[ServiceType.COPILOT]
        # Attribute the entry to what was addressed: prefix stripped, default model filled in
        target = resolve_provider(
            self.model,
            self.provider,
            set(Provider),
            service_defaults={defaults.provider: defaults.model_name},
        )
        recorder = self.recorder or get_usage_recorder()
        await recorder.record(
            UsageLogEntry(
                service_type=ServiceType.COPILOT,
                provider=target.provider,
                model_name=target.model,
                status=status,
                processing_time_ms=int(elapsed_ms),
                error_message=message,
                metadata={"hasSystem": bool(self.system_prompt)},
            )
        )
