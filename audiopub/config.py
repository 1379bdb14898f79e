"""
Centralized Configuration for Audiopub.

All environment variables are managed here using Pydantic Settings.

Usage:
    from audiopub.config import settings

    db_url = settings.database_url
    window = settings.play_window_hours
"""

import os
from typing import Literal
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with AUDIOPUB_ where applicable.
    """

    # =============================================================================
    # Application Environment
    # =============================================================================

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
        validation_alias="AUDIOPUB_ENVIRONMENT"
    )

    testing: bool = Field(
        default=False,
        description="Enable testing mode",
        validation_alias="TESTING"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        validation_alias="AUDIOPUB_LOG_LEVEL"
    )

    allowed_origins: str = Field(
        default="*",
        description="CORS allowed origins (comma-separated or '*')",
        validation_alias="AUDIOPUB_ALLOWED_ORIGINS"
    )

    # =============================================================================
    # Database
    # =============================================================================

    database_url: str = Field(
        default="sqlite:///./audiopub.db",
        description="Database connection URL (PostgreSQL or SQLite)",
        validation_alias="DATABASE_URL"
    )

    # =============================================================================
    # Authentication & Security
    # =============================================================================

    secret_key: str = Field(
        ...,
        description="Secret key for JWT token signing (generate with: openssl rand -hex 32)",
        validation_alias="AUDIOPUB_SECRET_KEY"
    )

    token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        description="JWT token expiration time in minutes",
        validation_alias="AUDIOPUB_TOKEN_EXPIRE_MINUTES"
    )

    # =============================================================================
    # Storage
    # =============================================================================

    audio_dir: str = Field(
        default="./audio",
        description="Directory where uploaded audio files are stored",
        validation_alias="AUDIOPUB_AUDIO_DIR"
    )

    # =============================================================================
    # Plays & Moderation Policy
    # =============================================================================

    play_window_hours: float = Field(
        default=12,
        gt=0,
        description="A viewer's repeated plays of one audio inside this window count once",
        validation_alias="AUDIOPUB_PLAY_WINDOW_HOURS"
    )

    play_tracker_max_entries: int = Field(
        default=100_000,
        gt=0,
        description="Upper bound on remembered (viewer, audio) play entries",
        validation_alias="AUDIOPUB_PLAY_TRACKER_MAX_ENTRIES"
    )

    favorite_notification_window_minutes: int = Field(
        default=5,
        ge=0,
        description="Repeated favorite notifications for the same audio are suppressed inside this window",
        validation_alias="AUDIOPUB_FAVORITE_NOTIFICATION_WINDOW_MINUTES"
    )

    max_user_edits: int = Field(
        default=3,
        ge=0,
        description="How many times a non-admin may edit one of their audios",
        validation_alias="AUDIOPUB_MAX_USER_EDITS"
    )

    # =============================================================================
    # Computed Properties
    # =============================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.testing

    # =============================================================================
    # Pydantic Model Configuration
    # =============================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =============================================================================
    # Field Validators
    # =============================================================================

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Convert postgres:// to postgresql:// for SQLAlchemy compatibility."""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is uppercase and valid."""
        v = v.upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        """Ensure environment is lowercase."""
        return v.lower() if isinstance(v, str) else v


# =============================================================================
# Global Settings Instance
# =============================================================================

try:
    settings = Settings()
except Exception as e:
    if os.getenv("TESTING") == "true":
        os.environ.setdefault("AUDIOPUB_SECRET_KEY", "test-secret-key-for-testing-only")
        settings = Settings()
    else:
        raise RuntimeError(
            f"Failed to load application settings: {e}\n\n"
            "Required environment variables:\n"
            "- AUDIOPUB_SECRET_KEY (generate with: openssl rand -hex 32)"
        ) from e


__all__ = ["settings", "Settings"]
