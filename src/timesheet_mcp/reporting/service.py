"""Fetch sessions from the store and hand them to the aggregation engine."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING, Callable

from ..tracking.models import CommuteDirection
from . import engine
from .models import CommutePattern, DailyAveragesReport, DailyBreakdownRow, PeriodAggregate

if TYPE_CHECKING:
    from ..storage.base import SessionStore, UserStore


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReportingService:
    """Read-only reports; safe to call concurrently."""

    def __init__(
        self,
        store: SessionStore,
        *,
        user_store: UserStore | None = None,
        clock: Callable[[], datetime] | None = None,
        commute_pattern_days: int = 90,
    ) -> None:
        self._store = store
        self._user_store = user_store
        self._clock = clock or _utc_now
        self._commute_pattern_days = commute_pattern_days

    async def get_period_aggregate(self, user_id: int, start: datetime, end: datetime) -> PeriodAggregate:
        if end <= start:
            raise ValueError("End must be after start")
        sessions = await self._store.get_sessions_in_range(user_id, start, end)
        return engine.period_aggregate(sessions, start, end, self._clock())

    async def get_daily_averages(self, user_id: int, days: int) -> DailyAveragesReport:
        now = self._clock()
        start, end = engine.trailing_window(days, now)
        sessions = await self._store.get_sessions_in_range(user_id, start, end)
        return engine.daily_averages(sessions, days, now)

    async def get_commute_patterns(self, user_id: int, direction: CommuteDirection) -> list[CommutePattern]:
        start, end = engine.trailing_window(self._commute_pattern_days, self._clock())
        sessions = await self._store.get_sessions_in_range(user_id, start, end)
        offset = 0
        if self._user_store is not None:
            user = await self._user_store.get_user(user_id)
            if user is not None:
                offset = user.utc_offset_minutes
        return engine.commute_patterns(sessions, direction, offset)

    async def get_daily_breakdown(self, user_id: int, start: date, end: date) -> list[DailyBreakdownRow]:
        if end < start:
            raise ValueError("End date cannot be before start date")
        range_start = datetime.combine(start, time.min, tzinfo=timezone.utc)
        range_end = datetime.combine(end, time.min, tzinfo=timezone.utc)
        sessions = await self._store.get_sessions_in_range(user_id, range_start, range_end)
        return engine.daily_breakdown(sessions, start, end, self._clock())


__all__ = ["ReportingService"]
