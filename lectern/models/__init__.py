"""Models package - re-exports all models for convenient imports."""

from lectern.models.ai_setting import AISetting
from lectern.models.ai_usage_log import AIUsageLog

__all__ = [
    "AISetting",
    "AIUsageLog",
]
