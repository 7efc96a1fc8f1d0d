"""
Configuration settings for the neurotrack telemetry pipeline.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NEUROTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum level for the stderr log sink",
    )

    # ========================================
    # Session lifecycle
    # ========================================
    duplicate_policy: Literal["reject", "resume"] = Field(
        default="resume",
        description="What to do when a second session is started for an active (user, activity) pair",
    )
    monitor_interval_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Interval of the background signal recomputation",
    )
    inactivity_timeout_seconds: float = Field(
        default=900.0,
        gt=0,
        description="Active sessions idle for longer than this are finalized as abandoned",
    )
    distraction_gap_ms: int = Field(
        default=30000,
        ge=0,
        description="Gap between consecutive events counted as a distraction",
    )
    default_user_age: int = Field(
        default=8,
        ge=1,
        description="Age used for age-dependent response time targets when unknown",
    )

    # ========================================
    # Persistence
    # ========================================
    persistence_backend: Literal["sql", "http", "none"] = Field(
        default="sql",
        description="Which gateway receives finalized sessions",
    )
    database_url: str = Field(
        default="sqlite:///neurotrack.db",
        description="SQLAlchemy connection string for the SQL gateway",
    )
    api_base_url: str = Field(
        default="http://localhost:3000/api",
        description="Base URL of the remote persistence API",
    )
    api_key: str = Field(
        default="",
        description="API key sent as X-API-Key to the remote persistence API",
    )
    api_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="HTTP request timeout",
    )

    # ─── Retry / local fallback ─────────────────────────────────────────────
    retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Save attempts before a report is kept locally only",
    )
    retry_base_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="First backoff delay; doubled on every further attempt",
    )
    local_cache_dir: Path = Field(
        default=Path.home() / ".neurotrack" / "pending",
        description="Directory of the bounded local report cache",
    )
    local_cache_max_entries: int = Field(
        default=100,
        ge=1,
        description="Oldest cached reports are evicted beyond this size",
    )

    # ─── History ────────────────────────────────────────────────────────────
    history_lookback_days: int = Field(
        default=30,
        ge=1,
        description="How far back historical sessions are considered for progression",
    )
    history_limit: int = Field(
        default=50,
        ge=1,
        description="Maximum historical sessions loaded per analysis",
    )

    def get_persistence_config(self) -> dict[str, object]:
        """Get retry and cache configuration as a dictionary."""
        return {
            "backend": self.persistence_backend,
            "retry_attempts": self.retry_attempts,
            "retry_base_delay_seconds": self.retry_base_delay_seconds,
            "local_cache_dir": str(self.local_cache_dir),
            "local_cache_max_entries": self.local_cache_max_entries,
        }

    def has_remote_api_configured(self) -> bool:
        """Check if the HTTP gateway can be used."""
        return bool(self.api_base_url)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
