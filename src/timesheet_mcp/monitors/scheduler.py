"""Independent polling loops for the monitors."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PeriodicTask:
    """Run ``callback`` every ``interval`` seconds until stopped.

    A failing tick is logged and the loop keeps going.
    """

    name: str
    callback: Callable[[], Awaitable[Any]]
    interval: float
    startup_delay: float = 0.0

    async def run(self, stop: asyncio.Event) -> None:
        logger.info(
            "Monitor started",
            extra={"monitor": self.name, "interval_seconds": self.interval},
        )
        if await self._wait(stop, self.startup_delay):
            return
        while not stop.is_set():
            try:
                await self.callback()
            except Exception:
                logger.exception("Monitor tick failed", extra={"monitor": self.name})
            if await self._wait(stop, self.interval):
                break
        logger.info("Monitor stopped", extra={"monitor": self.name})

    @staticmethod
    async def _wait(stop: asyncio.Event, seconds: float) -> bool:
        """Sleep up to ``seconds``; True when ``stop`` was set meanwhile."""

        if seconds <= 0:
            return stop.is_set()
        try:
            await asyncio.wait_for(stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


class MonitorScheduler:
    """Owns one asyncio task per ``PeriodicTask``; tasks share no state."""

    def __init__(self, tasks: list[PeriodicTask]) -> None:
        self.tasks = tasks
        self._stop = asyncio.Event()
        self._running: list[asyncio.Task[None]] = []

    @property
    def is_running(self) -> bool:
        return bool(self._running)

    def start(self) -> None:
        if self._running:
            return
        self._stop.clear()
        self._running = [
            asyncio.create_task(task.run(self._stop), name=f"monitor:{task.name}") for task in self.tasks
        ]

    async def stop(self) -> None:
        self._stop.set()
        running, self._running = self._running, []
        if running:
            await asyncio.gather(*running)


__all__ = ["MonitorScheduler", "PeriodicTask"]
