"""Registration and preference updates for users."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from ..tracking.models import TrackingState
from .models import User

if TYPE_CHECKING:
    from ..storage.base import UserStore

logger = logging.getLogger(__name__)

_LIMIT_FIELDS = {
    TrackingState.WORKING: "max_work_hours",
    TrackingState.COMMUTING: "max_commute_hours",
    TrackingState.LUNCH: "max_lunch_hours",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UserSettingsService:
    """Every update returns the saved user, or ``None`` for an unknown user.

    Invalid values raise ``ValueError`` (pydantic's ``ValidationError``) and
    leave the stored user untouched.
    """

    def __init__(self, user_store: UserStore, *, clock: Callable[[], datetime] | None = None) -> None:
        self._user_store = user_store
        self._clock = clock or _utc_now
        self._register_lock = asyncio.Lock()

    async def register(
        self,
        external_id: int,
        username: str | None = None,
        utc_offset_minutes: int = 0,
    ) -> User:
        """Register a user; the first one becomes admin. Existing users are returned as-is."""

        async with self._register_lock:
            existing = await self._user_store.get_user(external_id)
            if existing is not None:
                return existing
            is_first = not await self._user_store.list_users()
            user = User(
                external_id=external_id,
                username=username,
                is_admin=is_first,
                utc_offset_minutes=utc_offset_minutes,
                registered_at=self._clock(),
            )
            await self._user_store.save_user(user)
        logger.info("Registered user", extra={"user_id": external_id, "is_admin": user.is_admin})
        return user

    async def get_user(self, external_id: int) -> User | None:
        return await self._user_store.get_user(external_id)

    async def _update(self, external_id: int, **changes) -> User | None:
        user = await self._user_store.get_user(external_id)
        if user is None:
            return None
        for name, value in changes.items():
            setattr(user, name, value)
        await self._user_store.save_user(user)
        logger.info("Updated user settings", extra={"user_id": external_id, "fields": sorted(changes)})
        return user

    async def update_utc_offset(self, external_id: int, utc_offset_minutes: int) -> User | None:
        return await self._update(external_id, utc_offset_minutes=utc_offset_minutes)

    async def update_auto_shutdown_limit(
        self,
        external_id: int,
        state: TrackingState,
        max_hours: float | None,
    ) -> User | None:
        if state not in _LIMIT_FIELDS:
            raise ValueError("Cannot set auto-shutdown limit for idle state")
        return await self._update(external_id, **{_LIMIT_FIELDS[state]: max_hours})

    async def update_lunch_reminder(self, external_id: int, hour: int | None, minute: int = 0) -> User | None:
        return await self._update(external_id, lunch_reminder_hour=hour, lunch_reminder_minute=minute)

    async def update_target_work_hours(self, external_id: int, hours: float | None) -> User | None:
        return await self._update(external_id, target_work_hours=hours)

    async def update_forgot_shutdown_threshold(self, external_id: int, percent: int | None) -> User | None:
        return await self._update(external_id, forgot_shutdown_threshold_percent=percent)


__all__ = ["UserSettingsService"]
