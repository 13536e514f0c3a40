"""Configuration management for track-mcp."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_PATH = Path(".track") / "track.db"


class TrackSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    db_path: Path = Field(default=DEFAULT_DB_PATH, validation_alias="TRACK_DB_PATH")
    log_level: str = Field(default="WARNING", validation_alias="TRACK_LOG_LEVEL")
    busy_timeout_ms: int = Field(default=5000, validation_alias="TRACK_BUSY_TIMEOUT_MS")
    detect_worktree: bool = Field(default=True, validation_alias="TRACK_DETECT_WORKTREE")
    git_path: str | None = Field(default=None, validation_alias="TRACK_GIT_PATH")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "TRACK_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("busy_timeout_ms")
    @classmethod
    def _validate_busy_timeout(cls, value: int) -> int:
        if value < 0:
            raise ValueError("TRACK_BUSY_TIMEOUT_MS must be >= 0")
        return value

    @property
    def track_dir(self) -> Path:
        return self.db_path.parent


@lru_cache(maxsize=1)
def get_settings() -> TrackSettings:
    """Return cached settings instance."""

    settings = TrackSettings()
    settings.db_path = settings.db_path.expanduser().resolve()
    return settings


__all__ = ["DEFAULT_DB_PATH", "TrackSettings", "get_settings"]
