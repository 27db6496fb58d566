"""Storage contracts shared by the tracking services and monitors."""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Iterable, Protocol

if TYPE_CHECKING:
    from ..tracking.models import TrackingSession, TrackingState
    from ..users.models import User


class StorageError(RuntimeError):
    """Raised when a persistence operation fails."""


class ChromaUnavailableError(StorageError):
    """Raised when the Chroma client cannot be constructed."""


class ConcurrencyConflictError(StorageError):
    """Raised when a commit was decided against state that has since changed."""


class SessionStore(Protocol):
    """Read/write contract for tracking sessions."""

    async def get_session(self, session_id: str) -> TrackingSession | None:
        ...

    async def get_active_session(self, user_id: int) -> TrackingSession | None:
        ...

    async def get_last_commute_session(self, user_id: int, day: date) -> TrackingSession | None:
        ...

    async def has_worked_on(self, user_id: int, day: date) -> bool:
        ...

    async def get_sessions_in_range(
        self, user_id: int, start: datetime, end: datetime
    ) -> list[TrackingSession]:
        ...

    async def get_recent_sessions(self, user_id: int, count: int) -> list[TrackingSession]:
        ...

    async def get_all_active_sessions(self) -> list[TrackingSession]:
        ...

    async def get_average_duration(self, user_id: int, state: TrackingState) -> float | None:
        ...

    async def commit(
        self,
        *,
        added: Iterable[TrackingSession] = (),
        ended: Iterable[TrackingSession] = (),
        updated: Iterable[TrackingSession] = (),
    ) -> None:
        ...


class UserStore(Protocol):
    """Read/write contract for registered users."""

    async def get_user(self, external_id: int) -> User | None:
        ...

    async def list_users(self) -> list[User]:
        ...

    async def save_user(self, user: User) -> None:
        ...


__all__ = [
    "ChromaUnavailableError",
    "ConcurrencyConflictError",
    "SessionStore",
    "StorageError",
    "UserStore",
]
