"""Configuration management for Timesheet MCP."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TimesheetSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    log_level: str = Field(default="INFO", validation_alias="TIMESHEET_LOG_LEVEL")
    chroma_persist_path: Path = Field(
        default=Path("./storage/chroma"), validation_alias="CHROMA_PERSIST_PATH"
    )
    storage_backend: Literal["chroma", "memory"] = Field(
        default="chroma", validation_alias="TIMESHEET_STORAGE_BACKEND"
    )
    auto_shutdown_interval_seconds: int = Field(
        default=180, validation_alias="TIMESHEET_AUTO_SHUTDOWN_INTERVAL_SECONDS"
    )
    forgot_shutdown_interval_seconds: int = Field(
        default=180, validation_alias="TIMESHEET_FORGOT_SHUTDOWN_INTERVAL_SECONDS"
    )
    lunch_reminder_interval_seconds: int = Field(
        default=180, validation_alias="TIMESHEET_LUNCH_REMINDER_INTERVAL_SECONDS"
    )
    work_hours_alert_interval_seconds: int = Field(
        default=180, validation_alias="TIMESHEET_WORK_HOURS_ALERT_INTERVAL_SECONDS"
    )
    monitor_startup_delay_seconds: int = Field(
        default=30, validation_alias="TIMESHEET_MONITOR_STARTUP_DELAY_SECONDS"
    )
    commute_pattern_days: int = Field(default=90, validation_alias="TIMESHEET_COMMUTE_PATTERN_DAYS")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "TIMESHEET_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("storage_backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator(
        "auto_shutdown_interval_seconds",
        "forgot_shutdown_interval_seconds",
        "lunch_reminder_interval_seconds",
        "work_hours_alert_interval_seconds",
        "commute_pattern_days",
    )
    @classmethod
    def _validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Monitor intervals and the commute pattern window must be >= 1")
        return value

    @field_validator("monitor_startup_delay_seconds")
    @classmethod
    def _validate_startup_delay(cls, value: int) -> int:
        if value < 0:
            raise ValueError("TIMESHEET_MONITOR_STARTUP_DELAY_SECONDS must be >= 0")
        return value


@lru_cache(maxsize=1)
def get_settings() -> TimesheetSettings:
    """Return cached settings instance."""

    settings = TimesheetSettings()
    settings.chroma_persist_path = settings.chroma_persist_path.expanduser().resolve()
    return settings


__all__ = ["TimesheetSettings", "get_settings"]
