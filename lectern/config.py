from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "postgresql+asyncpg://localhost/lectern"

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_database_url(cls, v: str) -> str:
        """Convert a plain postgres:// URL to asyncpg format."""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+asyncpg://", 1)
        if v.startswith("postgresql://") and "+asyncpg" not in v:
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Provider credentials (presence decides provider fallback)
    google_generative_ai_api_key: str = ""
    openai_api_key: str = ""

    # Provider endpoints
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    openai_base_url: str | None = None

    # AI model defaults
    gemini_default_model: str = "gemini-2.0-flash"
    openai_default_model: str = "gpt-4o-mini"

    # Backend endpoints used by the editor-side clients
    transcription_url: str = "http://localhost:8000/api/extract-pdf"
    completion_url: str = "http://localhost:8000/api/ai/copilot"
    transcription_timeout_seconds: float = 120.0
    completion_timeout_seconds: float = 15.0

    # Extraction
    raster_scale: float = 2.0
    max_image_size_bytes: int = 10 * 1024 * 1024  # 10MB
    image_download_timeout_seconds: float = 30.0

    # Ghost text
    completion_debounce_ms: int = 500

    # PostHog LLM Analytics (mirror of usage logs)
    posthog_api_key: str = ""
    posthog_host: str = "https://us.i.posthog.com"
    posthog_enabled: bool = False

    # Logging
    log_level: str = "INFO"

    # Frontend
    cors_origins: list[str] = ["http://localhost:3000"]

    # Rate limiting
    rate_limit_enabled: bool = False
    rate_limit_storage_uri: str = "memory://"
    rate_limit_copilot_per_minute: int = 120
    rate_limit_extraction_per_minute: int = 30
    rate_limit_general_per_minute: int = 100

    # Request size limits (scanned pages travel as base64 PNGs)
    max_request_size_bytes: int = 25 * 1024 * 1024  # 25MB

    # Database pool
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800  # 30 minutes
    db_command_timeout: int = 30
    db_application_name: str = "lectern"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
