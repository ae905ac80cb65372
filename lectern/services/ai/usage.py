"""Best-effort recording of AI backend invocations.

Every call to a model (completion or extraction) produces one immutable
usage entry. Recording never raises: a failure to persist is logged and the
calling pipeline carries on.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lectern.enums import Provider, ServiceType, UsageStatus
from lectern.models import AIUsageLog
from lectern.services.posthog import capture_generation, generation_properties

logger = logging.getLogger(__name__)

PROMPT_SUMMARY_MAX_CHARS = 200


@dataclass(frozen=True)
class UsageLogEntry:
    service_type: ServiceType
    provider: Provider
    model_name: str
    status: UsageStatus
    processing_time_ms: int
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    prompt_summary: str | None = None
    error_message: str | None = None
    user_id: str | None = None
    reference_type: str | None = None
    reference_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def calculate_total_tokens(input_tokens: int | None, output_tokens: int | None) -> int | None:
    """Sum of input and output tokens, or None if either is unknown."""
    if input_tokens is not None and output_tokens is not None:
        return input_tokens + output_tokens
    return None


def truncate_prompt_summary(prompt: str | None) -> str | None:
    if not prompt:
        return None
    return prompt[:PROMPT_SUMMARY_MAX_CHARS]


class UsageRecorder:
    """Append usage entries to the ``ai_usage_logs`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory

    def _get_session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            from lectern.database import async_session

            self._session_factory = async_session
        return self._session_factory

    async def record(self, entry: UsageLogEntry) -> None:
        """Persist an entry. Failures are logged, never raised."""
        total_tokens = entry.total_tokens
        if total_tokens is None:
            total_tokens = calculate_total_tokens(entry.input_tokens, entry.output_tokens)

        try:
            async with self._get_session_factory()() as session:
                session.add(
                    AIUsageLog(
                        service_type=str(entry.service_type),
                        user_id=entry.user_id,
                        provider=str(entry.provider),
                        model_name=entry.model_name,
                        prompt_summary=truncate_prompt_summary(entry.prompt_summary),
                        status=str(entry.status),
                        error_message=entry.error_message,
                        input_tokens=entry.input_tokens,
                        output_tokens=entry.output_tokens,
                        total_tokens=total_tokens,
                        processing_time_ms=entry.processing_time_ms,
                        reference_type=entry.reference_type,
                        reference_id=entry.reference_id,
                        metadata_=dict(entry.metadata),
                    )
                )
                await session.commit()
        except Exception:
            logger.exception(
                f"Failed to log AI usage ({entry.service_type}/{entry.provider}, {entry.status})"
            )

        try:
            capture_generation(
                entry.user_id or "system",
                generation_properties(
                    service_type=str(entry.service_type),
                    provider=str(entry.provider),
                    model=entry.model_name,
                    status=str(entry.status),
                    processing_time_ms=entry.processing_time_ms,
                    input_tokens=entry.input_tokens,
                    output_tokens=entry.output_tokens,
                ),
            )
        except Exception:
            logger.exception("Failed to mirror AI usage to PostHog")


_recorder: UsageRecorder | None = None


def get_usage_recorder() -> UsageRecorder:
    """Get or create the shared recorder bound to the application database."""
    global _recorder
    if _recorder is None:
        _recorder = UsageRecorder()
    return _recorder
