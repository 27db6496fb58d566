"""Orchestrates tracking requests against the session store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, TypeAlias, assert_never

from .locks import UserLocks
from .models import TrackingSession, TrackingState
from .state_machine import EndSession, NoChange, StartNewSession, decide

if TYPE_CHECKING:
    from ..storage.base import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionStarted:
    started: TrackingSession
    ended: TrackingSession | None = None


@dataclass(frozen=True, slots=True)
class SessionEnded:
    ended: TrackingSession


TrackingResult: TypeAlias = SessionStarted | SessionEnded | NoChange


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimeTrackingService:
    """Apply tracking requests and manual edits for one user at a time."""

    def __init__(
        self,
        store: SessionStore,
        *,
        locks: UserLocks | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._locks = locks or UserLocks()
        self._clock = clock or _utc_now

    @property
    def locks(self) -> UserLocks:
        return self._locks

    async def start_state(
        self,
        user_id: int,
        requested_state: TrackingState,
        timestamp: datetime | None = None,
    ) -> TrackingResult:
        """Start, end or replace the user's active session.

        The derived facts the decision needs (active session, last commute of
        the day, whether the user worked today) are read fresh from the store
        inside the user's critical section, and the resulting insert/close pair
        is written as one commit.
        """

        if requested_state is TrackingState.IDLE:
            raise ValueError("Cannot explicitly request idle state; request the active state again to end it")

        timestamp = timestamp or self._clock()
        today = self._clock().astimezone(timezone.utc).date()

        async with self._locks.for_user(user_id):
            active = await self._store.get_active_session(user_id)
            last_commute = await self._store.get_last_commute_session(user_id, today)
            worked_today = await self._store.has_worked_on(user_id, today)

            outcome = decide(
                user_id,
                requested_state,
                timestamp,
                active,
                last_commute.commute_direction if last_commute else None,
                worked_today,
            )

            match outcome:
                case StartNewSession(new=new, session_to_end=None):
                    await self._store.commit(added=[new])
                    result: TrackingResult = SessionStarted(started=new)
                case StartNewSession(new=new, session_to_end=previous):
                    previous.end(timestamp)
                    await self._store.commit(added=[new], ended=[previous])
                    result = SessionStarted(started=new, ended=previous)
                case EndSession(session_to_end=previous):
                    previous.end(timestamp)
                    await self._store.commit(ended=[previous])
                    result = SessionEnded(ended=previous)
                case NoChange():
                    result = outcome
                case _:
                    assert_never(outcome)

        logger.info(
            "Processed tracking request",
            extra={
                "user_id": user_id,
                "requested_state": requested_state.value,
                "result": type(result).__name__,
            },
        )
        return result

    async def get_status(self, user_id: int) -> TrackingSession | None:
        return await self._store.get_active_session(user_id)

    async def get_sessions_for_day(self, user_id: int, day: date) -> list[TrackingSession]:
        start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
        return await self._store.get_sessions_in_range(user_id, start, start + timedelta(days=1))

    async def get_recent_sessions(self, user_id: int, count: int = 10) -> list[TrackingSession]:
        if count < 1:
            raise ValueError("Count must be at least 1")
        return await self._store.get_recent_sessions(user_id, count)

    async def _owned_session(self, user_id: int, session_id: str) -> TrackingSession | None:
        session = await self._store.get_session(session_id)
        if session is None or session.user_id != user_id:
            return None
        return session

    async def adjust_end_time(self, user_id: int, session_id: str, minutes: int) -> TrackingSession | None:
        """Shift a completed session's end; ``None`` if it is not the user's session."""

        async with self._locks.for_user(user_id):
            session = await self._owned_session(user_id, session_id)
            if session is None:
                return None
            session.adjust_end_time(minutes)
            await self._store.commit(updated=[session])
        logger.info(
            "Adjusted session end time",
            extra={"user_id": user_id, "session_id": session_id, "minutes": minutes},
        )
        return session

    async def adjust_start_time(
        self,
        user_id: int,
        session_id: str,
        minutes: int,
        now: datetime | None = None,
    ) -> TrackingSession | None:
        async with self._locks.for_user(user_id):
            session = await self._owned_session(user_id, session_id)
            if session is None:
                return None
            session.adjust_start_time(minutes, now=now or self._clock())
            await self._store.commit(updated=[session])
        logger.info(
            "Adjusted session start time",
            extra={"user_id": user_id, "session_id": session_id, "minutes": minutes},
        )
        return session

    async def set_note(self, user_id: int, session_id: str, note: str | None) -> TrackingSession | None:
        async with self._locks.for_user(user_id):
            session = await self._owned_session(user_id, session_id)
            if session is None:
                return None
            session.update_note(note)
            await self._store.commit(updated=[session])
        return session


__all__ = [
    "NoChange",
    "SessionEnded",
    "SessionStarted",
    "TimeTrackingService",
    "TrackingResult",
]
