"""Per-user serialization of session mutations."""

from __future__ import annotations

import asyncio


class UserLocks:
    """Registry handing out one ``asyncio.Lock`` per user.

    Every component that reads the active session and then writes a decision
    based on it (tracking requests, edits, monitor sweeps) must hold the owner's
    lock for the whole read-decide-write sequence.
    """

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}

    def for_user(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


__all__ = ["UserLocks"]
