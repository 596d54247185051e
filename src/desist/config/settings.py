"""
DESIST Application Settings

Production-grade configuration management using Pydantic Settings.
All values are loaded from environment variables with the DESIST_ prefix.

SECURITY: Never log or expose settings containing secrets.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class StealthSettings(BaseSettings):
    """Disguise session defaults."""

    model_config = SettingsConfigDict(env_prefix="DESIST_STEALTH_")

    default_cover_story: Literal["notes", "calculator", "browser", "calendar"] = Field(
        default="calculator",
        description="Cover story used until the user picks one",
    )
    default_idle_timeout_seconds: int = Field(
        default=300,
        ge=0,
        le=86400,
        description="Idle seconds before stealth reverts (0 disables)",
    )
    keypad_max_length: int = Field(default=16, ge=4, le=64)
    keypad_submit_key: str = Field(default="=", min_length=1, max_length=1)
    keypad_clear_key: str = Field(default="C", min_length=1, max_length=1)


class EmergencySettings(BaseSettings):
    """Emergency pipeline timing, retry, and alert configuration."""

    model_config = SettingsConfigDict(env_prefix="DESIST_EMERGENCY_")

    countdown_seconds: float = Field(default=5.0, ge=0.0, le=60.0)
    capture_duration_seconds: float = Field(
        default=30.0,
        ge=0.0,
        le=600.0,
        description="How long evidence is recorded before the pipeline moves on",
    )

    # Retry policy: max_retries=2 means three attempts per stage
    max_retries: int = Field(default=2, ge=0, le=10)
    backoff_multiplier: float = Field(default=1.0, ge=0.0, le=30.0)
    backoff_max_seconds: float = Field(default=8.0, ge=0.0, le=120.0)

    # Per-stage adapter timeouts
    capture_timeout_seconds: float = Field(default=10.0, gt=0.0)
    encrypt_timeout_seconds: float = Field(default=30.0, gt=0.0)
    upload_timeout_seconds: float = Field(default=120.0, gt=0.0)
    notify_timeout_seconds: float = Field(default=30.0, gt=0.0)
    wipe_timeout_seconds: float = Field(default=30.0, gt=0.0)

    # Alert defaults (user-editable at runtime)
    alert_message: str = Field(
        default="This is an emergency alert from DESIST app. I may need assistance.",
        max_length=480,
    )
    location_sharing_enabled: bool = Field(default=False)
    max_notified_contacts: int = Field(default=3, ge=1, le=20)

    # Panic gesture: N taps inside a sliding window
    panic_tap_count: int = Field(default=5, ge=2, le=20)
    panic_tap_window_seconds: float = Field(default=3.0, gt=0.0, le=30.0)


class PersistenceSettings(BaseSettings):
    """Settings store and audit sink configuration."""

    model_config = SettingsConfigDict(env_prefix="DESIST_PERSISTENCE_")

    backend: Literal["memory", "json"] = Field(default="json")
    background_retry_multiplier: float = Field(default=1.0, ge=0.0, le=60.0)
    background_retry_max_seconds: float = Field(default=60.0, ge=0.0, le=3600.0)


class Settings(BaseSettings):
    """
    Main application settings.

    All configuration is loaded from environment variables with DESIST_ prefix.
    Sensitive values use SecretStr to prevent accidental logging.

    Usage:
        settings = get_settings()
        countdown = settings.emergency.countdown_seconds
    """

    model_config = SettingsConfigDict(
        env_prefix="DESIST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    debug: bool = Field(default=False, description="Debug mode - NEVER enable in production")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level"
    )
    api_version: str = Field(default="v1", description="API version prefix")
    cors_origins: list[str] = Field(
        default=["http://localhost:8081"],
        description="Allowed CORS origins"
    )
    data_dir: str = Field(default=".desist", description="Directory for local state files")
    sentry_dsn: SecretStr = Field(default=SecretStr(""), description="Sentry DSN (empty disables)")

    # Nested settings
    stealth: StealthSettings = Field(default_factory=StealthSettings)
    emergency: EmergencySettings = Field(default_factory=EmergencySettings)
    persistence: PersistenceSettings = Field(default_factory=PersistenceSettings)

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.
    For testing, construct Settings directly and inject it.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
