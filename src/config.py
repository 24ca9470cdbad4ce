"""Application configuration via pydantic-settings.

All settings are loaded from environment variables (.env file).
Settings are organized into logical groups and composed into a single Settings object.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Hoshloop REST backend connection settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    hoshloop_api_url: str = Field(
        default="http://localhost:5000/api",
        description="Base URL of the Hoshloop REST backend",
    )
    api_timeout: float = Field(default=10.0, description="Backend request timeout in seconds")
    api_connect_timeout: float = Field(default=5.0, description="Backend connect timeout in seconds")


class RedisSettings(BaseSettings):
    """Redis connection used to keep customer wizards between requests."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection string",
    )
    wizard_session_ttl: int = Field(
        default=3600,
        description="Seconds an untouched feedback wizard survives in Redis",
    )


class ReviewSettings(BaseSettings):
    """External review platform handoff."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    review_url_template: str = Field(
        default="https://search.google.com/local/writereview?placeid={place_id}",
        description="Review page URL; {place_id} is replaced with the restaurant's place id",
    )
    default_place_id: str = Field(
        default="ChIJN1t_tDeuEmsRUsoyG83frY4",
        description="Place id used when a restaurant has none configured",
    )
    fallback_restaurant_name: str = Field(default="this restaurant")


class Settings(BaseSettings):
    """Root settings composing all sub-settings.

    Usage:
        settings = Settings()
        settings.api.hoshloop_api_url
        settings.redis.wizard_session_ttl
        settings.review.review_url_template
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    environment: str = Field(default="development")
    log_level: str = Field(default="DEBUG")

    # Composed settings (loaded from same .env)
    api: ApiSettings = Field(default_factory=ApiSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    review: ReviewSettings = Field(default_factory=ReviewSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            msg = f"Invalid log level: {v}. Must be one of {valid}"
            raise ValueError(msg)
        return upper

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


# Module-level singleton, import this wherever settings are needed.
settings = Settings()
