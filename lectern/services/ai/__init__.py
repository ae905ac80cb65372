"""AI backends: provider resolution, usage recording, completion and transcription."""

from lectern.services.ai.ai_config import AI_DEFAULTS, AIConfig, get_ai_config_with_fallback
from lectern.services.ai.providers import ResolvedProvider, available_keys, resolve_provider
from lectern.services.ai.usage import (
    UsageLogEntry,
    UsageRecorder,
    calculate_total_tokens,
    get_usage_recorder,
)

__all__ = [
    "AI_DEFAULTS",
    "AIConfig",
    "ResolvedProvider",
    "UsageLogEntry",
    "UsageRecorder",
    "available_keys",
    "calculate_total_tokens",
    "get_ai_config_with_fallback",
    "get_usage_recorder",
    "resolve_provider",
]
