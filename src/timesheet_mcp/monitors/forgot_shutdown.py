"""Notify users whose running session is far beyond their usual length."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from ..tracking.models import TrackingSession

if TYPE_CHECKING:
    from ..notifications import NotificationSink
    from ..storage.base import SessionStore, UserStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ForgotShutdownMonitor:
    """Flag active sessions whose elapsed time reaches ``average * threshold / 100``.

    Sessions are never modified. Each session is reported at most once; the
    remembered ids are dropped when the session stops being active.
    """

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
        self._notified: set[str] = set()

    async def _evaluate(self, session: TrackingSession, now: datetime) -> tuple[float, float] | None:
        """Return ``(elapsed_hours, average_hours)`` when the session is over threshold."""

        if not session.is_active:
            return None
        user = await self._user_store.get_user(session.user_id)
        if user is None or user.forgot_shutdown_threshold_percent is None:
            return None
        average = await self._store.get_average_duration(session.user_id, session.state)
        if average is None:
            return None
        elapsed = session.duration(now).total_seconds() / 3600
        if elapsed >= average * user.forgot_shutdown_threshold_percent / 100:
            return elapsed, average
        return None

    async def should_notify(self, session: TrackingSession) -> bool:
        return await self._evaluate(session, self._clock()) is not None

    async def check_and_notify(self) -> list[TrackingSession]:
        now = self._clock()
        active = await self._store.get_all_active_sessions()
        self._notified &= {session.id for session in active}

        flagged: list[TrackingSession] = []
        for session in active:
            if session.id in self._notified:
                continue
            try:
                hit = await self._evaluate(session, now)
                if hit is None:
                    continue
                elapsed, average = hit
                await self._sink.send_forgot_shutdown_reminder(session.user_id, session.state, elapsed, average)
            except Exception:
                logger.exception(
                    "Forgot-shutdown check failed",
                    extra={"user_id": session.user_id, "session_id": session.id},
                )
                continue
            self._notified.add(session.id)
            flagged.append(session)
            logger.info(
                "Sent forgot-shutdown reminder",
                extra={
                    "user_id": session.user_id,
                    "session_id": session.id,
                    "state": session.state.value,
                    "elapsed_hours": round(elapsed, 2),
                    "average_hours": round(average, 2),
                },
            )
        return flagged


__all__ = ["ForgotShutdownMonitor"]
