"""Pure aggregation over lists of tracking sessions.

Every function here is synchronous and side-effect free; sessions are fetched
by the caller. Active sessions are measured up to ``now``. Hour values keep
full precision and are only rounded for display.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Sequence

from ..tracking.models import CommuteDirection, TrackingSession, TrackingState
from .models import CommutePattern, DailyAveragesReport, DailyBreakdownRow, PeriodAggregate

MIN_OPTIMAL_HOUR_SAMPLES = 2


def session_hours(session: TrackingSession, now: datetime) -> float:
    return session.duration(now).total_seconds() / 3600


def average_duration_hours(sessions: Iterable[TrackingSession], state: TrackingState) -> float | None:
    """Mean length of the completed sessions in ``state``; ``None`` without history."""

    hours = [
        (session.ended_at - session.started_at).total_seconds() / 3600
        for session in sessions
        if session.state is state and session.ended_at is not None
    ]
    if not hours:
        return None
    return sum(hours) / len(hours)


@dataclass(slots=True)
class _Totals:
    work: float = 0.0
    commute_to_work: float = 0.0
    commute_to_home: float = 0.0
    lunch: float = 0.0
    has_work: bool = False
    spans: list[float] = field(default_factory=list)

    @property
    def commute(self) -> float:
        return self.commute_to_work + self.commute_to_home

    def add(self, session: TrackingSession, now: datetime) -> None:
        hours = session_hours(session, now)
        if session.state is TrackingState.WORKING:
            self.work += hours
            self.has_work = True
        elif session.state is TrackingState.LUNCH:
            self.lunch += hours
        elif session.state is TrackingState.COMMUTING:
            if session.commute_direction is CommuteDirection.TO_HOME:
                self.commute_to_home += hours
            else:
                self.commute_to_work += hours


def _span_hours(sessions: Sequence[TrackingSession], now: datetime) -> float | None:
    if not sessions:
        return None
    first_start = min(session.started_at for session in sessions)
    last_end = max(session.ended_at or now for session in sessions)
    return (last_end - first_start).total_seconds() / 3600


def _totals(sessions: Iterable[TrackingSession], now: datetime) -> _Totals:
    totals = _Totals()
    for session in sessions:
        totals.add(session, now)
    return totals


def _by_utc_date(sessions: Iterable[TrackingSession]) -> dict[date, list[TrackingSession]]:
    grouped: dict[date, list[TrackingSession]] = defaultdict(list)
    for session in sessions:
        grouped[session.started_at.astimezone(timezone.utc).date()].append(session)
    return grouped


def period_aggregate(
    sessions: Sequence[TrackingSession],
    start: datetime,
    end: datetime,
    now: datetime,
) -> PeriodAggregate:
    totals = _totals(sessions, now)
    work_days = {
        day
        for day, day_sessions in _by_utc_date(sessions).items()
        if any(session.state is TrackingState.WORKING for session in day_sessions)
    }
    return PeriodAggregate(
        start=start,
        end=end,
        total_work_hours=totals.work,
        total_commute_hours=totals.commute,
        total_lunch_hours=totals.lunch,
        work_days_count=len(work_days),
        total_duration_hours=_span_hours(sessions, now),
    )


def trailing_window(days: int, now: datetime) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` covering today and the ``days - 1`` days before it."""

    if days < 1:
        raise ValueError("Days must be at least 1")
    end = datetime.combine(now.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)
    end += timedelta(days=1)
    return end - timedelta(days=days), end


def daily_averages(sessions: Sequence[TrackingSession], days: int, now: datetime) -> DailyAveragesReport:
    """Average each state over the work days in the trailing ``days``.

    Days without a Working session still count towards ``days_included`` but
    never dilute the averages.
    """

    start, end = trailing_window(days, now)
    by_day = _by_utc_date(s for s in sessions if start <= s.started_at < end)

    overall = _Totals()
    work_days = 0
    for day_sessions in by_day.values():
        day_totals = _totals(day_sessions, now)
        overall.work += day_totals.work
        overall.commute_to_work += day_totals.commute_to_work
        overall.commute_to_home += day_totals.commute_to_home
        overall.lunch += day_totals.lunch
        overall.spans.append(_span_hours(day_sessions, now) or 0.0)
        if day_totals.has_work:
            work_days += 1

    def per_day(total: float) -> float:
        return total / work_days if work_days else 0.0

    return DailyAveragesReport(
        days_included=len(by_day),
        total_work_days=work_days,
        average_work_hours=per_day(overall.work),
        average_commute_hours=per_day(overall.commute),
        average_commute_to_work_hours=per_day(overall.commute_to_work),
        average_commute_to_home_hours=per_day(overall.commute_to_home),
        average_lunch_hours=per_day(overall.lunch),
        average_total_duration_hours=per_day(sum(overall.spans)),
    )


def commute_patterns(
    sessions: Iterable[TrackingSession],
    direction: CommuteDirection,
    utc_offset_minutes: int = 0,
) -> list[CommutePattern]:
    """Commute statistics per local day-of-week for one direction.

    The optimal start hour is the local hour with the lowest average duration
    among hours that have at least two completed samples; ties go to the
    earlier hour.
    """

    offset = timedelta(minutes=utc_offset_minutes)
    by_weekday: dict[int, list[tuple[int, float]]] = defaultdict(list)
    for session in sessions:
        if (
            session.state is not TrackingState.COMMUTING
            or session.commute_direction is not direction
            or session.ended_at is None
        ):
            continue
        local_start = session.started_at.astimezone(timezone.utc) + offset
        hours = (session.ended_at - session.started_at).total_seconds() / 3600
        by_weekday[local_start.weekday()].append((local_start.hour, hours))

    patterns: list[CommutePattern] = []
    for weekday in sorted(by_weekday):
        samples = by_weekday[weekday]
        by_hour: dict[int, list[float]] = defaultdict(list)
        for hour, hours in samples:
            by_hour[hour].append(hours)

        candidates = [
            (sum(durations) / len(durations), hour)
            for hour, durations in by_hour.items()
            if len(durations) >= MIN_OPTIMAL_HOUR_SAMPLES
        ]
        best = min(candidates) if candidates else None

        patterns.append(
            CommutePattern(
                day_of_week=weekday,
                session_count=len(samples),
                average_duration_hours=sum(hours for _, hours in samples) / len(samples),
                optimal_start_hour=best[1] if best else None,
                shortest_duration_hours=best[0] if best else None,
            )
        )
    return patterns


def daily_breakdown(
    sessions: Sequence[TrackingSession],
    start: date,
    end: date,
    now: datetime,
) -> list[DailyBreakdownRow]:
    """One row per UTC date in ``[start, end)``, including empty days."""

    if end < start:
        raise ValueError("End date cannot be before start date")

    by_day = _by_utc_date(sessions)
    rows: list[DailyBreakdownRow] = []
    day = start
    while day < end:
        day_sessions = by_day.get(day, [])
        if not day_sessions:
            rows.append(DailyBreakdownRow(day=day, has_activity=False))
        else:
            totals = _totals(day_sessions, now)
            rows.append(
                DailyBreakdownRow(
                    day=day,
                    has_activity=True,
                    work_hours=totals.work,
                    commute_hours=totals.commute,
                    commute_to_work_hours=totals.commute_to_work,
                    commute_to_home_hours=totals.commute_to_home,
                    lunch_hours=totals.lunch,
                    total_duration_hours=_span_hours(day_sessions, now),
                )
            )
        day += timedelta(days=1)
    return rows


__all__ = [
    "MIN_OPTIMAL_HOUR_SAMPLES",
    "average_duration_hours",
    "commute_patterns",
    "daily_averages",
    "daily_breakdown",
    "period_aggregate",
    "session_hours",
    "trailing_window",
]
