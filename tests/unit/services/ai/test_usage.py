"""Tests for AI usage recording."""

from unittest.mock import AsyncMock, MagicMock, patch

from lectern.enums import Provider, ServiceType, UsageStatus
from lectern.models import AIUsageLog
from lectern.services.ai.usage import (
    PROMPT_SUMMARY_MAX_CHARS,
    UsageLogEntry,
    UsageRecorder,
    calculate_total_tokens,
    truncate_prompt_summary,
)


def make_session_factory():
    session = MagicMock()
    session.commit = AsyncMock()
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory, session


def make_entry(**overrides) -> UsageLogEntry:
    fields = {
        "service_type": ServiceType.COPILOT,
        "provider": Provider.GEMINI,
        "model_name": "gemini-2.0-flash",
        "status": UsageStatus.SUCCESS,
        "processing_time_ms": 120,
    }
    fields.update(overrides)
    return UsageLogEntry(**fields)


class TestHelpers:
    """Tests for token and summary helpers."""

    def test_total_tokens(self):
        assert calculate_total_tokens(10, 5) == 15
        assert calculate_total_tokens(0, 0) == 0

    def test_total_tokens_unknown(self):
        assert calculate_total_tokens(None, 5) is None
        assert calculate_total_tokens(10, None) is None

    def test_prompt_summary_truncated(self):
        assert PROMPT_SUMMARY_MAX_CHARS == 200
        assert truncate_prompt_summary("x" * 500) == "x" * 200
        assert truncate_prompt_summary("short") == "short"
        assert truncate_prompt_summary(None) is None


class TestUsageRecorder:
    """Tests for UsageRecorder.record."""

    async def test_persists_row(self):
        factory, session = make_session_factory()
        recorder = UsageRecorder(session_factory=factory)

        await recorder.record(
            make_entry(
                input_tokens=12,
                output_tokens=8,
                prompt_summary="p" * 300,
                metadata={"hasSystem": True},
                user_id="user-1",
            )
        )

        session.add.assert_called_once()
        row = session.add.call_args.args[0]
        assert isinstance(row, AIUsageLog)
        assert row.service_type == "copilot"
        assert row.provider == "gemini"
        assert row.status == "success"
        assert row.total_tokens == 20
        assert row.prompt_summary == "p" * 200
        assert row.metadata_ == {"hasSystem": True}
        assert row.user_id == "user-1"
        session.commit.assert_awaited_once()

    async def test_explicit_total_tokens_kept(self):
        factory, session = make_session_factory()

        await UsageRecorder(factory).record(make_entry(input_tokens=1, output_tokens=1, total_tokens=5))

        assert session.add.call_args.args[0].total_tokens == 5

    async def test_database_failure_swallowed(self):
        factory = MagicMock(side_effect=RuntimeError("database unavailable"))

        # Must not raise
        await UsageRecorder(factory).record(make_entry(status=UsageStatus.ERROR))

    async def test_commit_failure_swallowed(self):
        factory, session = make_session_factory()
        session.commit.side_effect = RuntimeError("commit failed")

        await UsageRecorder(factory).record(make_entry())

    async def test_mirrors_to_posthog(self):
        factory, _ = make_session_factory()

        with patch("lectern.services.ai.usage.capture_generation") as mock_capture:
            await UsageRecorder(factory).record(
                make_entry(status=UsageStatus.TIMEOUT, input_tokens=3, output_tokens=None)
            )

        distinct_id, properties = mock_capture.call_args.args
        assert distinct_id == "system"
        assert properties["$ai_is_error"] is True
        assert properties["$ai_input_tokens"] == 3
        assert properties["$ai_output_tokens"] == 0
        assert properties["service_type"] == "copilot"
        assert properties["status"] == "timeout"

    async def test_posthog_failure_swallowed(self):
        factory, session = make_session_factory()

        with patch(
            "lectern.services.ai.usage.capture_generation",
            side_effect=RuntimeError("posthog down"),
        ):
            await UsageRecorder(factory).record(make_entry())

        session.commit.assert_awaited_once()
