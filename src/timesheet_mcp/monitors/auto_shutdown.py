"""Force-end sessions that run past a user's configured cap."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable

from ..storage.base import ConcurrencyConflictError
from ..tracking.locks import UserLocks
from ..tracking.models import TrackingSession

if TYPE_CHECKING:
    from ..storage.base import SessionStore, UserStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AutoShutdownMonitor:
    """Ends active sessions whose elapsed time is strictly above the user's limit.

    Ending is silent: no notification is sent.
    """

    def __init__(
        self,
        store: SessionStore,
        user_store: UserStore,
        *,
        locks: UserLocks | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._user_store = user_store
        self._locks = locks or UserLocks()
        self._clock = clock or _utc_now

    async def check_and_shutdown(self) -> list[TrackingSession]:
        now = self._clock()
        ended: list[TrackingSession] = []
        for session in await self._store.get_all_active_sessions():
            try:
                result = await self._check_session(session, now)
            except Exception:
                logger.exception(
                    "Auto-shutdown check failed",
                    extra={"user_id": session.user_id, "session_id": session.id},
                )
                continue
            if result is not None:
                ended.append(result)
        if ended:
            logger.info("Auto-shutdown ended sessions", extra={"count": len(ended)})
        return ended

    async def _check_session(self, session: TrackingSession, now: datetime) -> TrackingSession | None:
        user = await self._user_store.get_user(session.user_id)
        if user is None:
            return None
        limit = user.max_hours_for(session.state)
        if limit is None or session.duration(now) <= timedelta(hours=limit):
            return None

        async with self._locks.for_user(session.user_id):
            current = await self._store.get_session(session.id)
            if current is None or not current.is_active:
                return None
            if current.duration(now) <= timedelta(hours=limit):
                return None
            current.end(now)
            try:
                await self._store.commit(ended=[current])
            except ConcurrencyConflictError:
                logger.debug("Session ended concurrently", extra={"session_id": session.id})
                return None

        logger.info(
            "Auto-shutdown ended session",
            extra={
                "user_id": current.user_id,
                "session_id": current.id,
                "state": current.state.value,
                "limit_hours": limit,
            },
        )
        return current


__all__ = ["AutoShutdownMonitor"]
