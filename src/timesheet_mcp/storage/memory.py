"""In-memory stores used by tests and the ``memory`` storage backend."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable

from ..reporting.engine import average_duration_hours
from ..tracking.models import TrackingSession, TrackingState
from ..users.models import User
from .base import ConcurrencyConflictError, StorageError


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` of a calendar day."""

    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def validate_commit(
    existing: dict[str, TrackingSession],
    added: list[TrackingSession],
    ended: list[TrackingSession],
    updated: list[TrackingSession],
) -> None:
    """Reject a commit that no longer matches ``existing``.

    Shared by every store so the conditional-close and single-active-session
    rules are enforced identically.
    """

    closing = {session.id for session in ended}
    for session in ended:
        stored = existing.get(session.id)
        if stored is None:
            raise StorageError(f"Session '{session.id}' does not exist")
        if not stored.is_active:
            raise ConcurrencyConflictError(f"Session '{session.id}' was already ended")
        if session.is_active:
            raise ValueError(f"Session '{session.id}' is listed as ended but has no end time")
    for session in updated:
        if session.id not in existing:
            raise StorageError(f"Session '{session.id}' does not exist")
    for session in added:
        if session.id in existing:
            raise StorageError(f"Session '{session.id}' already exists")
        if not session.is_active:
            continue
        for stored in existing.values():
            if stored.user_id == session.user_id and stored.is_active and stored.id not in closing:
                raise ConcurrencyConflictError(
                    f"User {session.user_id} already has active session '{stored.id}'"
                )


class InMemorySessionStore:
    """Session store backed by a dict; every read returns detached copies."""

    def __init__(self, sessions: Iterable[TrackingSession] | None = None) -> None:
        self._sessions: dict[str, TrackingSession] = {
            session.id: session.copy() for session in (sessions or [])
        }
        self._write_lock = asyncio.Lock()
        self.commit_count = 0

    def _select(self, predicate) -> list[TrackingSession]:
        matches = [session.copy() for session in self._sessions.values() if predicate(session)]
        matches.sort(key=lambda session: session.started_at)
        return matches

    async def get_session(self, session_id: str) -> TrackingSession | None:
        stored = self._sessions.get(session_id)
        return stored.copy() if stored else None

    async def get_active_session(self, user_id: int) -> TrackingSession | None:
        active = self._select(lambda s: s.user_id == user_id and s.is_active)
        return active[-1] if active else None

    async def get_last_commute_session(self, user_id: int, day: date) -> TrackingSession | None:
        start, end = day_bounds(day)
        commutes = self._select(
            lambda s: s.user_id == user_id
            and s.state is TrackingState.COMMUTING
            and start <= s.started_at < end
        )
        return commutes[-1] if commutes else None

    async def has_worked_on(self, user_id: int, day: date) -> bool:
        start, end = day_bounds(day)
        return any(
            s.user_id == user_id and s.state is TrackingState.WORKING and start <= s.started_at < end
            for s in self._sessions.values()
        )

    async def get_sessions_in_range(
        self, user_id: int, start: datetime, end: datetime
    ) -> list[TrackingSession]:
        return self._select(lambda s: s.user_id == user_id and start <= s.started_at < end)

    async def get_recent_sessions(self, user_id: int, count: int) -> list[TrackingSession]:
        sessions = self._select(lambda s: s.user_id == user_id)
        return list(reversed(sessions))[:count]

    async def get_all_active_sessions(self) -> list[TrackingSession]:
        return self._select(lambda s: s.is_active)

    async def get_average_duration(self, user_id: int, state: TrackingState) -> float | None:
        return average_duration_hours(self._select(lambda s: s.user_id == user_id), state)

    async def commit(
        self,
        *,
        added: Iterable[TrackingSession] = (),
        ended: Iterable[TrackingSession] = (),
        updated: Iterable[TrackingSession] = (),
    ) -> None:
        added, ended, updated = list(added), list(ended), list(updated)
        async with self._write_lock:
            validate_commit(self._sessions, added, ended, updated)
            for session in [*ended, *updated, *added]:
                self._sessions[session.id] = session.copy()
            self.commit_count += 1


class InMemoryUserStore:
    def __init__(self, users: Iterable[User] | None = None) -> None:
        self._users: dict[int, User] = {user.external_id: user.model_copy() for user in (users or [])}

    async def get_user(self, external_id: int) -> User | None:
        user = self._users.get(external_id)
        return user.model_copy() if user else None

    async def list_users(self) -> list[User]:
        return [user.model_copy() for user in self._users.values()]

    async def save_user(self, user: User) -> None:
        self._users[user.external_id] = user.model_copy()


__all__ = ["InMemorySessionStore", "InMemoryUserStore", "day_bounds", "validate_commit"]
