"""Per-service AI configuration with hard-coded fallbacks."""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lectern.enums import Provider, ServiceType
from lectern.models import AISetting

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AIConfig:
    provider: Provider
    model_name: str
    temperature: float
    max_output_tokens: int


# Used whenever the database has no active configuration for a service
AI_DEFAULTS: dict[ServiceType, AIConfig] = {
    ServiceType.COPILOT: AIConfig(
        provider=Provider.GEMINI,
        model_name="gemini-2.0-flash",
        temperature=0.7,
        max_output_tokens=50,
    ),
    ServiceType.EXTRACTION: AIConfig(
        provider=Provider.GEMINI,
        model_name="gemini-2.0-flash",
        temperature=0.2,
        max_output_tokens=4096,
    ),
}


async def get_ai_config(
    service_type: ServiceType,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AIConfig | None:
    """
    Fetch the active configuration for a service.

    Returns:
        The configuration, or None if missing or the lookup failed
    """
    if session_factory is None:
        from lectern.database import async_session

        session_factory = async_session

    try:
        async with session_factory() as session:
            result = await session.execute(
                select(AISetting)
                .where(AISetting.setting_key == str(service_type), AISetting.is_active.is_(True))
                .limit(1)
            )
            row = result.scalar_one_or_none()
    except Exception as e:
        logger.error(f"Failed to fetch AI config for {service_type}: {e}")
        return None

    if row is None:
        logger.info(f"No active AI config for {service_type}, using defaults")
        return None

    try:
        provider = Provider(row.provider)
    except ValueError:
        logger.error(f"Unknown provider {row.provider!r} configured for {service_type}")
        return None

    return AIConfig(
        provider=provider,
        model_name=row.model_name,
        temperature=row.temperature,
        max_output_tokens=row.max_output_tokens,
    )


async def get_ai_config_with_fallback(
    service_type: ServiceType,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AIConfig:
    """Configuration for a service, never None."""
    config = await get_ai_config(service_type, session_factory)
    return config or AI_DEFAULTS[service_type]
