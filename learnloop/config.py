"""
Configuration settings for learnloop.

Uses Pydantic Settings for environment variable management with .env file support.
Every variable is prefixed with LEARNLOOP_ (e.g. LEARNLOOP_USER_ID).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from learnloop.core.modes import AnswerMode, LearnModeConfig
from learnloop.sync.platform_store import PlatformConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LEARNLOOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Learner
    # ========================================
    user_id: str = Field(
        default="local",
        description="Learner identifier used to key persisted records",
    )

    # ========================================
    # Record Storage
    # ========================================
    records_db_path: Path = Field(
        default=Path.home() / ".learnloop" / "records.db",
        description="SQLite file for local progress",
    )
    platform_base_url: str | None = Field(
        default=None,
        description="Study-set platform API; local SQLite is used when unset",
    )
    platform_api_key: str | None = Field(
        default=None,
        description="API key sent as X-API-Key",
    )
    platform_timeout_seconds: float = Field(default=10.0, gt=0)

    # ========================================
    # Learn Mode
    # ========================================
    default_answer_mode: AnswerMode = Field(default=AnswerMode.MULTIPLE_CHOICE)
    multiple_choice_threshold: int = Field(
        default=2,
        ge=1,
        description="Correct answers needed to master a term with multiple choice",
    )
    written_threshold: int = Field(
        default=3,
        ge=1,
        description="Correct answers needed to master a term with written answers",
    )
    reinsert_offset: int = Field(
        default=3,
        ge=1,
        description="Active terms a missed term is pushed behind",
    )

    # ========================================
    # Background Sync
    # ========================================
    sync_max_retries: int = Field(default=3, ge=1)
    sync_retry_delay_seconds: float = Field(default=1.0, ge=0)
    sync_flush_timeout_seconds: float = Field(default=10.0, gt=0)

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="WARNING")

    @property
    def has_platform(self) -> bool:
        return bool(self.platform_base_url)

    def platform_config(self) -> PlatformConfig:
        return PlatformConfig(
            base_url=self.platform_base_url or PlatformConfig().base_url,
            api_key=self.platform_api_key,
            timeout_seconds=self.platform_timeout_seconds,
        )

    def mode_config(self, **overrides: Any) -> LearnModeConfig:
        """
        Build a LearnModeConfig from the configured defaults.

        Raises:
            InvalidModeConfig: If an override fails validation
        """
        data: dict[str, Any] = {
            "answer_mode": self.default_answer_mode,
            "mastery_thresholds": {
                AnswerMode.MULTIPLE_CHOICE: self.multiple_choice_threshold,
                AnswerMode.WRITTEN: self.written_threshold,
            },
            "reinsert_offset": self.reinsert_offset,
        }
        data.update({k: v for k, v in overrides.items() if v is not None})
        return LearnModeConfig.parse(data)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
