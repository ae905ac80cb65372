"""PostHog mirror of AI usage entries.

Each recorded model call can also be sent as an ``$ai_generation`` event so
usage shows up in PostHog's LLM analytics. Disabled unless both
``POSTHOG_ENABLED`` and ``POSTHOG_API_KEY`` are set.
"""

import logging
import time
from typing import Any

from posthog import Posthog

from lectern.config import settings

logger = logging.getLogger(__name__)

_client: Posthog | None = None


def get_posthog_client() -> Posthog | None:
    """Shared client, or None when analytics is off."""
    global _client
    if not (settings.posthog_enabled and settings.posthog_api_key):
        return None
    if _client is None:
        _client = Posthog(settings.posthog_api_key, host=settings.posthog_host)
    return _client


def shutdown_posthog() -> None:
    """Flush queued events. Called on application shutdown."""
    global _client
    if _client is not None:
        _client.shutdown()
        _client = None


def generation_properties(
    service_type: str,
    provider: str,
    model: str,
    status: str,
    processing_time_ms: int,
    input_tokens: int | None = None,
    output_tokens: int | None = None,
) -> dict[str, Any]:
    """Map the fields of a usage entry onto PostHog's LLM event properties."""
    return {
        "$ai_provider": provider,
        "$ai_model": model,
        "$ai_input_tokens": input_tokens or 0,
        "$ai_output_tokens": output_tokens or 0,
        # PostHog expects seconds
        "$ai_latency": processing_time_ms / 1000.0,
        "$ai_is_error": status != "success",
        "service_type": service_type,
        "status": status,
    }


def capture_generation(distinct_id: str, properties: dict[str, Any]) -> bool:
    """Send one ``$ai_generation`` event. Returns False when analytics is off."""
    client = get_posthog_client()
    if client is None:
        return False

    client.capture(distinct_id=distinct_id, event="$ai_generation", properties=properties)
    logger.debug(
        f"PostHog: $ai_generation for {distinct_id} "
        f"({properties.get('service_type')}, {properties.get('status')})"
    )
    return True


class LLMTimer:
    """Wall-clock timer for a model call; readable while the call is running."""

    def __init__(self):
        self._started: float | None = None
        self._stopped: float | None = None

    def __enter__(self):
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc_info):
        self._stopped = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        if self._started is None:
            return 0.0
        end = self._stopped if self._stopped is not None else time.perf_counter()
        return (end - self._started) * 1000
