"""Tracking session records."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum


class TrackingState(str, Enum):
    """Activity a user can be tracking. ``IDLE`` is never stored on a session."""

    IDLE = "idle"
    COMMUTING = "commuting"
    WORKING = "working"
    LUNCH = "lunch"


class CommuteDirection(str, Enum):
    TO_WORK = "to_work"
    TO_HOME = "to_home"

    def opposite(self) -> "CommuteDirection":
        return CommuteDirection.TO_HOME if self is CommuteDirection.TO_WORK else CommuteDirection.TO_WORK


@dataclass(slots=True)
class TrackingSession:
    """One continuous span of one activity for one user."""

    user_id: int
    state: TrackingState
    started_at: datetime
    commute_direction: CommuteDirection | None = None
    ended_at: datetime | None = None
    note: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        if self.state is TrackingState.IDLE:
            raise ValueError("Idle is not a trackable session state")
        if self.state is TrackingState.COMMUTING and self.commute_direction is None:
            raise ValueError("Commute direction must be specified when state is commuting")
        if self.state is not TrackingState.COMMUTING and self.commute_direction is not None:
            raise ValueError("Commute direction should only be specified when state is commuting")
        if self.ended_at is not None and self.ended_at < self.started_at:
            raise ValueError("End time cannot be before start time")

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    def duration(self, now: datetime) -> timedelta:
        """Elapsed time, measured up to ``now`` while the session is still active."""

        return (self.ended_at or now) - self.started_at

    def end(self, ended_at: datetime) -> None:
        if not self.is_active:
            raise ValueError("Cannot end a session that is already ended")
        if ended_at < self.started_at:
            raise ValueError("End time cannot be before start time")
        self.ended_at = ended_at

    def adjust_end_time(self, minutes: int) -> None:
        """Shift the end of a completed session; positive values extend it."""

        if self.ended_at is None:
            raise ValueError("Cannot adjust an active session. End the session first")
        new_end = self.ended_at + timedelta(minutes=minutes)
        if new_end <= self.started_at:
            raise ValueError(
                f"Adjustment of {minutes} minutes would result in end time before or equal to start time"
            )
        self.ended_at = new_end

    def adjust_start_time(self, minutes: int, *, now: datetime) -> None:
        new_start = self.started_at + timedelta(minutes=minutes)
        if self.ended_at is not None and new_start >= self.ended_at:
            raise ValueError(
                f"Adjustment of {minutes} minutes would result in start time at or after end time"
            )
        if new_start > now + timedelta(minutes=5):
            raise ValueError("Start time cannot be in the future")
        self.started_at = new_start

    def update_note(self, note: str | None) -> None:
        self.note = note.strip() if note and note.strip() else None

    def copy(self) -> "TrackingSession":
        return TrackingSession(
            user_id=self.user_id,
            state=self.state,
            started_at=self.started_at,
            commute_direction=self.commute_direction,
            ended_at=self.ended_at,
            note=self.note,
            id=self.id,
        )


__all__ = ["CommuteDirection", "TrackingSession", "TrackingState"]
