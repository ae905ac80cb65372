"""Backend side of ghost-text completion."""

import asyncio
import logging
from dataclasses import dataclass

from lectern.enums import ServiceType, UsageStatus
from lectern.exceptions import CompletionRequestError, ProviderNotConfiguredError
from lectern.services.ai.ai_config import get_ai_config_with_fallback
from lectern.services.ai.generation import generate_text
from lectern.services.ai.providers import available_keys, resolve_provider
from lectern.services.ai.usage import UsageLogEntry, UsageRecorder, get_usage_recorder
from lectern.services.posthog import LLMTimer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CopilotRequest:
    prompt: str
    model: str | None = None
    provider: str | None = None
    system: str | None = None


@dataclass(frozen=True)
class CopilotResult:
    text: str
    provider: str
    model: str
    input_tokens: int | None = None
    output_tokens: int | None = None


async def complete(
    request: CopilotRequest,
    recorder: UsageRecorder | None = None,
    user_id: str | None = None,
) -> CopilotResult:
    """
    Generate a short continuation and record the call.

    Raises:
        ProviderNotConfiguredError: If no provider credential is configured
        CompletionRequestError: 408 when the call was cancelled, 500 on failure
    """
    keys = available_keys()
    if not keys:
        raise ProviderNotConfiguredError(
            "Missing AI API key. Set GOOGLE_GENERATIVE_AI_API_KEY or OPENAI_API_KEY."
        )

    recorder = recorder or get_usage_recorder()
    config = await get_ai_config_with_fallback(ServiceType.COPILOT)
    resolved = resolve_provider(
        request.model,
        request.provider,
        keys,
        service_defaults={config.provider: config.model_name},
    )
    logger.info(
        f"Copilot request: provider={resolved.provider} model={resolved.model} "
        f"prompt_length={len(request.prompt)}"
    )

    async def record(status: UsageStatus, elapsed_ms: float, **fields) -> None:
        await recorder.record(
            UsageLogEntry(
                service_type=ServiceType.COPILOT,
                provider=resolved.provider,
                model_name=resolved.model,
                status=status,
                processing_time_ms=int(elapsed_ms),
                prompt_summary=request.prompt,
                user_id=user_id,
                metadata={"hasSystem": bool(request.system)},
                **fields,
            )
        )

    timer = LLMTimer()
    with timer:
        try:
            result = await generate_text(
                resolved.provider,
                resolved.model,
                request.prompt,
                system=request.system,
                temperature=config.temperature,
                max_tokens=config.max_output_tokens,
            )
        except asyncio.CancelledError:
            await record(UsageStatus.TIMEOUT, timer.elapsed_ms, error_message="Request aborted")
            raise CompletionRequestError("Completion request aborted", status_code=408) from None
        except Exception as e:
            logger.error(f"Copilot generation failed: {e}")
            await record(UsageStatus.ERROR, timer.elapsed_ms, error_message=str(e))
            raise CompletionRequestError("AI request processing failed", status_code=500) from e

    await record(
        UsageStatus.SUCCESS,
        timer.elapsed_ms,
        input_tokens=result.input_tokens,
        output_tokens=result.output_tokens,
    )
    return CopilotResult(
        text=result.text,
        provider=str(resolved.provider),
        model=resolved.model,
        input_tokens=result.input_tokens,
        output_tokens=result.output_tokens,
    )
