"""
Configuration settings for the Command Center pipeline.
All sensitive values are loaded from environment variables.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "Command Center"
    debug: bool = False
    environment: str = "production"
    log_level: str = "INFO"

    # DeepSeek AI
    deepseek_api_key: str = ""
    deepseek_base_url: str = "https://api.deepseek.com/v1"
    deepseek_model: str = "deepseek-chat"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2000

    # LLM gateway resilience
    llm_max_attempts: int = Field(default=3, ge=1)
    llm_initial_backoff_seconds: float = 0.5
    circuit_breaker_threshold: int = Field(default=5, ge=1)
    circuit_breaker_reset_seconds: float = 60.0

    # Database (PostgreSQL)
    database_url: str = ""
    database_echo: bool = False
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800

    # Local calendar used by session rules and scheduled jobs
    timezone: str = "America/New_York"

    # Conversation Settings
    freeform_max_messages: int = 20
    session_idle_hours: int = 2
    session_sweep_interval_minutes: int = 30
    history_limit: int = 10

    # Drafts
    draft_ttl_hours: int = 24
    draft_sweep_interval_minutes: int = 60

    # Feedback learning
    pattern_threshold: int = 3
    max_patterns: int = 20
    pattern_learning_hour: int = 3
    weekly_report_day: str = "monday"
    weekly_report_hour: int = 2


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the application settings."""
    return settings
