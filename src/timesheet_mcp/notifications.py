"""Notification delivery for monitor findings."""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from .tracking.models import TrackingState

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Fire-and-forget delivery; implementations give no delivery guarantee."""

    async def send_forgot_shutdown_reminder(
        self,
        user_id: int,
        state: TrackingState,
        elapsed_hours: float,
        average_hours: float,
    ) -> None:
        ...

    async def send_lunch_reminder(self, user_id: int) -> None:
        ...

    async def send_work_hours_complete(self, user_id: int, target_hours: float, actual_hours: float) -> None:
        ...


@dataclass(slots=True)
class Notification:
    user_id: int
    kind: str
    payload: dict[str, Any]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationOutbox:
    """Queue notifications per user until an MCP client drains them.

    Each user's queue keeps at most ``max_per_user`` entries; the oldest are
    dropped first.
    """

    def __init__(self, max_per_user: int = 100) -> None:
        if max_per_user < 1:
            raise ValueError("max_per_user must be at least 1")
        self._max_per_user = max_per_user
        self._queues: defaultdict[int, deque[Notification]] = defaultdict(
            lambda: deque(maxlen=self._max_per_user)
        )

    @property
    def pending_count(self) -> int:
        return sum(len(queue) for queue in self._queues.values())

    def _push(self, user_id: int, kind: str, payload: dict[str, Any]) -> None:
        self._queues[user_id].append(Notification(user_id=user_id, kind=kind, payload=payload))
        logger.info("Queued notification", extra={"user_id": user_id, "kind": kind, **payload})

    async def send_forgot_shutdown_reminder(
        self,
        user_id: int,
        state: TrackingState,
        elapsed_hours: float,
        average_hours: float,
    ) -> None:
        self._push(
            user_id,
            "forgot_shutdown",
            {"state": state.value, "elapsed_hours": elapsed_hours, "average_hours": average_hours},
        )

    async def send_lunch_reminder(self, user_id: int) -> None:
        self._push(user_id, "lunch_reminder", {})

    async def send_work_hours_complete(self, user_id: int, target_hours: float, actual_hours: float) -> None:
        self._push(
            user_id,
            "work_hours_complete",
            {"target_hours": target_hours, "actual_hours": actual_hours},
        )

    def drain(self, user_id: int) -> list[Notification]:
        """Remove and return the user's queued notifications, oldest first."""

        queue = self._queues.pop(user_id, None)
        return list(queue) if queue else []


__all__ = ["Notification", "NotificationOutbox", "NotificationSink"]
