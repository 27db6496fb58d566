"""Daily lunch reminders and work-target alerts."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import TYPE_CHECKING, Callable

from ..reporting.engine import session_hours
from ..tracking.models import TrackingState
from ..users.models import User

if TYPE_CHECKING:
    from ..notifications import NotificationSink
    from ..storage.base import SessionStore, UserStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_day(user: User, now: datetime) -> tuple[date, datetime, datetime]:
    """The user's local date and its UTC ``[start, end)`` bounds."""

    offset = timedelta(minutes=user.utc_offset_minutes)
    local_now = now.astimezone(timezone.utc) + offset
    start = datetime.combine(local_now.date(), time.min, tzinfo=timezone.utc) - offset
    return local_now.date(), start, start + timedelta(days=1)


class LunchReminderMonitor:
    """Remind working users who have not had lunch once their reminder time passes."""

    def __init__(
        self,
        store: SessionStore,
        user_store: UserStore,
        sink: NotificationSink,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._user_store = user_store
        self._sink = sink
        self._clock = clock or _utc_now
        self._reminded: dict[int, date] = {}

    async def check_and_remind(self) -> list[int]:
        now = self._clock()
        reminded: list[int] = []
        for user in await self._user_store.list_users():
            if user.lunch_reminder_hour is None:
                continue
            try:
                if await self._remind(user, now):
                    reminded.append(user.external_id)
            except Exception:
                logger.exception("Lunch reminder check failed", extra={"user_id": user.external_id})
        return reminded

    async def _remind(self, user: User, now: datetime) -> bool:
        today, day_start, day_end = local_day(user, now)
        if self._reminded.get(user.external_id) == today:
            return False

        local_now = now.astimezone(timezone.utc) + timedelta(minutes=user.utc_offset_minutes)
        reminder_at = time(user.lunch_reminder_hour, user.lunch_reminder_minute)
        if local_now.time() < reminder_at:
            return False

        active = await self._store.get_active_session(user.external_id)
        if active is None or active.state is not TrackingState.WORKING:
            return False

        sessions = await self._store.get_sessions_in_range(user.external_id, day_start, day_end)
        if any(session.state is TrackingState.LUNCH for session in sessions):
            return False

        await self._sink.send_lunch_reminder(user.external_id)
        self._reminded[user.external_id] = today
        logger.info(
            "Sent lunch reminder",
            extra={"user_id": user.external_id, "local_time": local_now.strftime("%H:%M")},
        )
        return True


class WorkHoursAlertMonitor:
    """Tell users on local weekdays when today's work reaches their target."""

    def __init__(
        self,
        store: SessionStore,
        user_store: UserStore,
        sink: NotificationSink,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._user_store = user_store
        self._sink = sink
        self._clock = clock or _utc_now
        self._alerted: dict[int, date] = {}

    async def check_and_alert(self) -> list[int]:
        now = self._clock()
        alerted: list[int] = []
        for user in await self._user_store.list_users():
            if user.target_work_hours is None:
                continue
            try:
                if await self._alert(user, now):
                    alerted.append(user.external_id)
            except Exception:
                logger.exception("Work hours alert check failed", extra={"user_id": user.external_id})
        return alerted

    async def _alert(self, user: User, now: datetime) -> bool:
        today, day_start, day_end = local_day(user, now)
        if today.weekday() >= 5:
            return False
        if self._alerted.get(user.external_id) == today:
            return False

        sessions = await self._store.get_sessions_in_range(user.external_id, day_start, day_end)
        worked = sum(
            session_hours(session, now) for session in sessions if session.state is TrackingState.WORKING
        )
        if worked < user.target_work_hours:
            return False

        await self._sink.send_work_hours_complete(user.external_id, user.target_work_hours, worked)
        self._alerted[user.external_id] = today
        logger.info(
            "Sent work hours complete alert",
            extra={
                "user_id": user.external_id,
                "target_hours": user.target_work_hours,
                "actual_hours": round(worked, 2),
            },
        )
        return True


__all__ = ["LunchReminderMonitor", "WorkHoursAlertMonitor", "local_day"]
