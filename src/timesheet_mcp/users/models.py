"""User registration and preference model."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..tracking.models import TrackingState

MAX_UTC_OFFSET_MINUTES = 14 * 60


class User(BaseModel):
    """A registered user together with their tracking preferences."""

    model_config = ConfigDict(validate_assignment=True)

    external_id: int = Field(..., description="Identity on the chat platform.")
    username: str | None = Field(default=None, description="Display handle on the chat platform.")
    is_admin: bool = Field(default=False, description="The first registered user administers the bot.")
    utc_offset_minutes: int = Field(
        default=0,
        description="Fixed offset added to UTC to get the user's local time.",
    )
    registered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    lunch_reminder_hour: int | None = Field(default=None, description="Local hour of the lunch reminder.")
    lunch_reminder_minute: int = Field(default=0, description="Local minute of the lunch reminder.")
    target_work_hours: float | None = Field(default=None, description="Daily work goal in hours.")
    forgot_shutdown_threshold_percent: int | None = Field(
        default=None,
        description="Percentage of the historical average at which a running session is flagged.",
    )
    max_work_hours: float | None = Field(default=None, description="Auto-shutdown cap for working.")
    max_commute_hours: float | None = Field(default=None, description="Auto-shutdown cap for commuting.")
    max_lunch_hours: float | None = Field(default=None, description="Auto-shutdown cap for lunch.")

    @field_validator("utc_offset_minutes")
    @classmethod
    def _validate_offset(cls, value: int) -> int:
        if abs(value) > MAX_UTC_OFFSET_MINUTES:
            raise ValueError("UTC offset must be within +/- 14 hours")
        return value

    @field_validator("lunch_reminder_hour")
    @classmethod
    def _validate_reminder_hour(cls, value: int | None) -> int | None:
        if value is not None and not 0 <= value <= 23:
            raise ValueError("Lunch reminder hour must be between 0 and 23")
        return value

    @field_validator("lunch_reminder_minute")
    @classmethod
    def _validate_reminder_minute(cls, value: int) -> int:
        if not 0 <= value <= 59:
            raise ValueError("Lunch reminder minute must be between 0 and 59")
        return value

    @field_validator("target_work_hours", "max_work_hours", "max_commute_hours", "max_lunch_hours")
    @classmethod
    def _validate_positive_hours(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("Hours must be greater than 0")
        return value

    @field_validator("forgot_shutdown_threshold_percent")
    @classmethod
    def _validate_threshold(cls, value: int | None) -> int | None:
        if value is not None and value <= 100:
            raise ValueError("Threshold percentage must be greater than 100")
        return value

    def max_hours_for(self, state: TrackingState) -> float | None:
        """Auto-shutdown cap configured for ``state``, if any."""

        if state is TrackingState.WORKING:
            return self.max_work_hours
        if state is TrackingState.COMMUTING:
            return self.max_commute_hours
        if state is TrackingState.LUNCH:
            return self.max_lunch_hours
        return None


__all__ = ["MAX_UTC_OFFSET_MINUTES", "User"]
