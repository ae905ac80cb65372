"""Tests for the PostHog usage mirror."""

from unittest.mock import MagicMock, patch

from lectern.services import posthog
from lectern.services.posthog import LLMTimer, capture_generation, generation_properties


class TestGenerationProperties:
    def test_maps_usage_fields(self):
        props = generation_properties(
            service_type="extraction",
            provider="gemini",
            model="gemini-2.0-flash",
            status="success",
            processing_time_ms=1500,
            input_tokens=10,
            output_tokens=20,
        )

        assert props["$ai_provider"] == "gemini"
        assert props["$ai_model"] == "gemini-2.0-flash"
        assert props["$ai_latency"] == 1.5
        assert props["$ai_is_error"] is False
        assert props["$ai_input_tokens"] == 10
        assert props["$ai_output_tokens"] == 20

    def test_unknown_tokens_reported_as_zero(self):
        props = generation_properties("copilot", "openai", "gpt-4o-mini", "error", 0)

        assert props["$ai_input_tokens"] == 0
        assert props["$ai_output_tokens"] == 0
        assert props["$ai_is_error"] is True


class TestCaptureGeneration:
    def test_noop_when_disabled(self):
        # POSTHOG_ENABLED=false in conftest
        assert capture_generation("user-1", {"status": "success"}) is False

    def test_sends_event_when_enabled(self):
        client = MagicMock()
        with patch.object(posthog, "get_posthog_client", return_value=client):
            assert capture_generation("user-1", {"status": "success"}) is True

        client.capture.assert_called_once_with(
            distinct_id="user-1",
            event="$ai_generation",
            properties={"status": "success"},
        )


class TestLLMTimer:
    def test_zero_before_start(self):
        assert LLMTimer().elapsed_ms == 0.0

    def test_measures_block(self):
        with patch("lectern.services.posthog.time.perf_counter", side_effect=[1.0, 1.25]):
            with LLMTimer() as timer:
                pass

        assert timer.elapsed_ms == 250.0
