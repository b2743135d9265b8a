"""
Configuration management for the Study Buddy backend.

Centralizes all configuration using Pydantic settings with environment variable support.
"""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./study_buddy.db",
        description="SQLAlchemy database URL (SQLite or PostgreSQL)"
    )
    db_pool_size: int = Field(
        default=5,
        description="Database connection pool size"
    )
    db_max_overflow: int = Field(
        default=10,
        description="Maximum overflow connections"
    )
    db_pool_timeout: int = Field(
        default=30,
        description="Connection pool timeout in seconds"
    )

    # API Configuration
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=8000,
        description="API server port"
    )
    cors_allow_origins: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by the CORS middleware"
    )
    default_user_id: str = Field(
        default="default-user",
        description="User id applied when a request does not name one"
    )

    # LLM Configuration
    openai_api_key: str = Field(
        default="",
        description="OpenAI API key (required at runtime)"
    )
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI chat model used for tutoring, summaries and quizzes"
    )
    llm_max_retries: int = Field(
        default=3,
        description="Retry attempts for rate-limited or timed-out LLM calls"
    )
    llm_timeout: int = Field(
        default=60,
        description="Per-call LLM timeout in seconds"
    )

    # Quiz cache
    quiz_cache_ttl_seconds: int = Field(
        default=3600,
        description="Lifetime of cached generated quiz questions"
    )

    # Workflow runtime
    workflow_poll_interval_seconds: float = Field(
        default=5.0,
        description="How often the scheduler looks for sleeping runs that are due"
    )
    workflow_step_max_attempts: int = Field(
        default=3,
        description="Attempts per workflow step before the run is failed"
    )

    # Application Settings
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    environment: str = Field(
        default="development",
        description="Environment: development, test, staging, production"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    Returns:
        Settings: Application settings
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings():
    """Reset the global settings instance (useful for testing)."""
    global _settings
    _settings = None


def validate_required_settings():
    """
    Check runtime settings before the application starts serving.

    Raises:
        ValueError: A required setting is missing or a workflow/cache limit
            is out of range
    """
    settings = get_settings()

    if not settings.openai_api_key:
        raise ValueError(
            "OPENAI_API_KEY environment variable is required but not set. "
            "The tutor chat and both study workflows call the OpenAI API."
        )

    if not settings.database_url:
        raise ValueError("DATABASE_URL is required but not set")

    if settings.workflow_poll_interval_seconds <= 0:
        raise ValueError("WORKFLOW_POLL_INTERVAL_SECONDS must be positive")

    if settings.workflow_step_max_attempts < 1:
        raise ValueError("WORKFLOW_STEP_MAX_ATTEMPTS must be at least 1")

    if settings.quiz_cache_ttl_seconds <= 0:
        raise ValueError("QUIZ_CACHE_TTL_SECONDS must be positive")

    return True
