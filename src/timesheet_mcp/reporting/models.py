"""Report records produced by the aggregation engine."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime


@dataclass(slots=True)
class PeriodAggregate:
    start: datetime
    end: datetime
    total_work_hours: float
    total_commute_hours: float
    total_lunch_hours: float
    work_days_count: int
    # First session start to last session end (or now); None when the period is empty.
    total_duration_hours: float | None


@dataclass(slots=True)
class DailyAveragesReport:
    """Per-state averages over the days that contained work."""

    days_included: int
    total_work_days: int
    average_work_hours: float
    average_commute_hours: float
    average_commute_to_work_hours: float
    average_commute_to_home_hours: float
    average_lunch_hours: float
    average_total_duration_hours: float


@dataclass(slots=True)
class CommutePattern:
    day_of_week: int  # Monday == 0
    session_count: int
    average_duration_hours: float
    optimal_start_hour: int | None = None
    shortest_duration_hours: float | None = None

    @property
    def day_name(self) -> str:
        return calendar.day_name[self.day_of_week]


@dataclass(slots=True)
class DailyBreakdownRow:
    day: date
    has_activity: bool
    work_hours: float = 0.0
    commute_hours: float = 0.0
    commute_to_work_hours: float = 0.0
    commute_to_home_hours: float = 0.0
    lunch_hours: float = 0.0
    total_duration_hours: float | None = None


__all__ = ["CommutePattern", "DailyAveragesReport", "DailyBreakdownRow", "PeriodAggregate"]
