"""
Configuration management for the placement matching engine.

Uses Pydantic Settings for type-safe configuration with environment variable support.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from placement_matching.utils.constants import (
    COMPUTE_VERSION,
    DEFAULT_BATCH_SIZE,
    DEFAULT_INTERVAL_SECONDS,
    DEFAULT_MATCHING_WEIGHTS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETENTION_DAYS,
)


# Base paths
ROOT_DIR = Path(__file__).parent.parent.parent
PACKAGE_DIR = ROOT_DIR / "placement_matching"
LOGS_DIR = ROOT_DIR / "logs"


class DatabaseSettings(BaseSettings):
    """MongoDB database configuration."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    host: str = "localhost"
    port: int = 27017
    name: str = "placement_matching"
    username: str | None = None
    password: str | None = None

    # Bulk replace runs inside a multi-document transaction (needs a replica set)
    use_transactions: bool = True


class MatchingSettings(BaseSettings):
    """Score calculator weights."""

    model_config = SettingsConfigDict(env_prefix="MATCHING_")

    skill_weight: float = Field(DEFAULT_MATCHING_WEIGHTS["skill_weight"], ge=0)
    academic_weight: float = Field(DEFAULT_MATCHING_WEIGHTS["academic_weight"], ge=0)
    experience_weight: float = Field(DEFAULT_MATCHING_WEIGHTS["experience_weight"], ge=0)
    preference_weight: float = Field(DEFAULT_MATCHING_WEIGHTS["preference_weight"], ge=0)
    compute_version: str = COMPUTE_VERSION

    @model_validator(mode="after")
    def validate_weight_sum(self) -> "MatchingSettings":
        """Weights are a convex combination."""
        total = (
            self.skill_weight
            + self.academic_weight
            + self.experience_weight
            + self.preference_weight
        )
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Matching weights must sum to 1.0, got {total:.4f}")
        return self


class QueueSettings(BaseSettings):
    """Recomputation queue and processor configuration."""

    model_config = SettingsConfigDict(env_prefix="QUEUE_")

    backend: Literal["mongodb", "memory"] = "mongodb"
    interval_seconds: float = Field(DEFAULT_INTERVAL_SECONDS, gt=0)
    initial_delay_seconds: float = Field(1.0, ge=0)
    batch_size: int = Field(DEFAULT_BATCH_SIZE, ge=1)
    max_attempts: int = Field(DEFAULT_MAX_ATTEMPTS, ge=1)
    task_timeout_seconds: float = Field(60.0, gt=0)
    retention_days: int = Field(DEFAULT_RETENTION_DAYS, ge=0)

    # Append a run log entry even when a tick claimed nothing
    record_empty_runs: bool = True


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: str = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {extra[task_id]} | {message}"
    file_path: Path = LOGS_DIR / "placement_matching.log"
    rotation: str = "10 MB"
    retention: str = "30 days"
    console_output: bool = True
    file_output: bool = True


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    name: str = "placement-matching"
    version: str = "1.0.0"
    description: str = "Candidate/opportunity matching engine and recomputation queue"
    debug: bool = False

    # Environment
    environment: Literal["development", "production", "testing"] = "development"

    # Nested settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# Global settings instance (singleton pattern)
_settings: AppSettings | None = None


def get_settings() -> AppSettings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reload_settings() -> AppSettings:
    """Force reload settings from environment."""
    global _settings
    _settings = AppSettings()
    return _settings
