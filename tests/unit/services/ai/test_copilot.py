"""Tests for the copilot completion service."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from lectern.enums import Provider, ServiceType, UsageStatus
from lectern.exceptions import CompletionRequestError, ProviderNotConfiguredError
from lectern.services.ai.ai_config import AI_DEFAULTS
from lectern.services.ai.copilot import CopilotRequest, complete
from lectern.services.ai.generation import GenerationResult

MODULE = "lectern.services.ai.copilot"


@pytest.fixture
def copilot_config():
    with patch(
        f"{MODULE}.get_ai_config_with_fallback",
        AsyncMock(return_value=AI_DEFAULTS[ServiceType.COPILOT]),
    ) as mock_config:
        yield mock_config


class TestComplete:
    """Tests for complete."""

    async def test_success_records_tokens(self, recorder, copilot_config):
        with (
            patch(f"{MODULE}.available_keys", return_value={Provider.GEMINI, Provider.OPENAI}),
            patch(
                f"{MODULE}.generate_text",
                AsyncMock(return_value=GenerationResult("mange.", input_tokens=30, output_tokens=3)),
            ) as mock_generate,
        ):
            result = await complete(
                CopilotRequest(prompt="Le chat", system="Continue."), recorder=recorder
            )

        assert result.text == "mange."
        assert result.provider == "gemini"
        assert result.model == "gemini-2.0-flash"
        assert (result.input_tokens, result.output_tokens) == (30, 3)

        kwargs = mock_generate.call_args.kwargs
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 50
        assert kwargs["system"] == "Continue."

        (entry,) = recorder.entries
        assert entry.status == UsageStatus.SUCCESS
        assert entry.service_type == ServiceType.COPILOT
        assert entry.input_tokens == 30
        assert entry.metadata == {"hasSystem": True}
        assert entry.prompt_summary == "Le chat"

    async def test_requested_model_honoured(self, recorder, copilot_config):
        with (
            patch(f"{MODULE}.available_keys", return_value={Provider.GEMINI, Provider.OPENAI}),
            patch(f"{MODULE}.generate_text", AsyncMock(return_value=GenerationResult("x"))) as mock_generate,
        ):
            result = await complete(CopilotRequest(prompt="p", model="openai/gpt-4o"), recorder=recorder)

        assert (result.provider, result.model) == ("openai", "gpt-4o")
        assert mock_generate.call_args.args[:2] == (Provider.OPENAI, "gpt-4o")

    async def test_falls_back_when_key_missing(self, recorder, copilot_config):
        with (
            patch(f"{MODULE}.available_keys", return_value={Provider.GEMINI}),
            patch(f"{MODULE}.generate_text", AsyncMock(return_value=GenerationResult("x"))),
        ):
            result = await complete(CopilotRequest(prompt="p", model="openai/gpt-4o"), recorder=recorder)

        assert (result.provider, result.model) == ("gemini", "gemini-2.0-flash")

    async def test_no_keys(self, recorder):
        with patch(f"{MODULE}.available_keys", return_value=set()):
            with pytest.raises(ProviderNotConfiguredError):
                await complete(CopilotRequest(prompt="p"), recorder=recorder)

        assert recorder.entries == []

    async def test_failure_is_500_and_logged(self, recorder, copilot_config):
        with (
            patch(f"{MODULE}.available_keys", return_value={Provider.GEMINI}),
            patch(f"{MODULE}.generate_text", AsyncMock(side_effect=RuntimeError("quota"))),
        ):
            with pytest.raises(CompletionRequestError) as exc_info:
                await complete(CopilotRequest(prompt="p"), recorder=recorder)

        assert exc_info.value.status_code == 500
        (entry,) = recorder.entries
        assert entry.status == UsageStatus.ERROR
        assert entry.error_message == "quota"
        assert entry.metadata == {"hasSystem": False}

    async def test_cancellation_is_408_and_logged_as_timeout(self, recorder, copilot_config):
        with (
            patch(f"{MODULE}.available_keys", return_value={Provider.GEMINI}),
            patch(f"{MODULE}.generate_text", AsyncMock(side_effect=asyncio.CancelledError())),
        ):
            with pytest.raises(CompletionRequestError) as exc_info:
                await complete(CopilotRequest(prompt="p"), recorder=recorder)

        assert exc_info.value.status_code == 408
        assert recorder.statuses == ["timeout"]
