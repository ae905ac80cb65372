"""Tests for provider and model resolution."""

from unittest.mock import patch

import pytest

from lectern.enums import Provider
from lectern.services.ai.providers import (
    DEFAULT_MODELS,
    ResolvedProvider,
    available_keys,
    resolve_provider,
)

BOTH = {Provider.GEMINI, Provider.OPENAI}
GEMINI_ONLY = {Provider.GEMINI}
OPENAI_ONLY = {Provider.OPENAI}


class TestResolveProvider:
    """Tests for resolve_provider."""

    def test_prefixed_model_forces_provider(self):
        assert resolve_provider("openai/gpt-4o", None, BOTH) == ResolvedProvider(
            Provider.OPENAI, "gpt-4o"
        )

    @pytest.mark.parametrize("prefix", ["google", "gemini"])
    def test_google_prefixes_map_to_gemini(self, prefix):
        resolved = resolve_provider(f"{prefix}/gemini-1.5-pro", Provider.OPENAI, BOTH)

        assert resolved == ResolvedProvider(Provider.GEMINI, "gemini-1.5-pro")

    def test_prefix_wins_over_requested_provider(self):
        resolved = resolve_provider("openai/gpt-4o", "gemini", BOTH)

        assert resolved.provider == Provider.OPENAI

    def test_unknown_prefix_discards_model(self):
        resolved = resolve_provider("mistral/mistral-large", None, BOTH)

        assert resolved == ResolvedProvider(Provider.GEMINI, DEFAULT_MODELS[Provider.GEMINI])

    def test_requested_provider_used_without_prefix(self):
        resolved = resolve_provider("gpt-4o", "openai", BOTH)

        assert resolved == ResolvedProvider(Provider.OPENAI, "gpt-4o")

    def test_invalid_requested_provider_ignored(self):
        resolved = resolve_provider(None, "mistral", OPENAI_ONLY)

        assert resolved == ResolvedProvider(Provider.OPENAI, DEFAULT_MODELS[Provider.OPENAI])

    def test_gemini_preferred_when_nothing_requested(self):
        assert resolve_provider(None, None, BOTH).provider == Provider.GEMINI
        assert resolve_provider(None, None, OPENAI_ONLY).provider == Provider.OPENAI

    def test_fallback_to_other_provider_drops_model(self):
        """OpenAI model asked for, only Gemini configured: Gemini default, not gpt-4o."""
        resolved = resolve_provider("openai/gpt-4o", None, GEMINI_ONLY)

        assert resolved == ResolvedProvider(Provider.GEMINI, DEFAULT_MODELS[Provider.GEMINI])

    def test_fallback_from_gemini_to_openai(self):
        resolved = resolve_provider("gemini-1.5-pro", "gemini", OPENAI_ONLY)

        assert resolved == ResolvedProvider(Provider.OPENAI, DEFAULT_MODELS[Provider.OPENAI])

    def test_no_keys_never_raises(self):
        resolved = resolve_provider("openai/gpt-4o", None, set())

        assert resolved == ResolvedProvider(Provider.OPENAI, "gpt-4o")

    def test_service_default_applies_to_matching_provider_only(self):
        defaults = {Provider.GEMINI: "gemini-1.5-flash"}

        assert resolve_provider(None, None, BOTH, defaults).model == "gemini-1.5-flash"
        assert (
            resolve_provider(None, "openai", BOTH, defaults).model
            == DEFAULT_MODELS[Provider.OPENAI]
        )

    def test_empty_model_name_after_prefix(self):
        resolved = resolve_provider("openai/", None, BOTH)

        assert resolved == ResolvedProvider(Provider.OPENAI, DEFAULT_MODELS[Provider.OPENAI])


class TestAvailableKeys:
    """Tests for credential detection."""

    def test_reads_configured_keys(self):
        with patch("lectern.services.ai.providers.settings") as mock_settings:
            mock_settings.google_generative_ai_api_key = "g"
            mock_settings.openai_api_key = ""

            assert available_keys() == {Provider.GEMINI}

    def test_no_keys(self):
        with patch("lectern.services.ai.providers.settings") as mock_settings:
            mock_settings.google_generative_ai_api_key = ""
            mock_settings.openai_api_key = ""

            assert available_keys() == set()
