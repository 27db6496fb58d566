from __future__ import annotations

import asyncio

from timesheet_mcp.monitors import MonitorScheduler, PeriodicTask


def test_periodic_tasks_run_until_stopped() -> None:
    calls = {"auto": 0, "forgot": 0}

    async def auto() -> None:
        calls["auto"] += 1

    async def forgot() -> None:
        calls["forgot"] += 1

    async def scenario() -> bool:
        scheduler = MonitorScheduler(
            [PeriodicTask("auto", auto, 0.01), PeriodicTask("forgot", forgot, 0.01)]
        )
        scheduler.start()
        running = scheduler.is_running
        await asyncio.sleep(0.05)
        await scheduler.stop()
        return running and not scheduler.is_running

    assert asyncio.run(scenario())
    assert calls["auto"] >= 2
    assert calls["forgot"] >= 2


def test_failing_tick_does_not_stop_loop(caplog) -> None:
    attempts = []

    async def flaky() -> None:
        attempts.append(1)
        raise RuntimeError("store offline")

    async def scenario() -> None:
        scheduler = MonitorScheduler([PeriodicTask("flaky", flaky, 0.01)])
        scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

    with caplog.at_level("ERROR"):
        asyncio.run(scenario())

    assert len(attempts) >= 2
    assert "Monitor tick failed" in caplog.text


def test_stop_during_startup_delay_skips_first_tick() -> None:
    calls = []

    async def tick() -> None:
        calls.append(1)

    async def scenario() -> None:
        scheduler = MonitorScheduler([PeriodicTask("slow", tick, 5, startup_delay=5)])
        scheduler.start()
        await asyncio.sleep(0.01)
        await scheduler.stop()

    asyncio.run(scenario())
    assert calls == []
