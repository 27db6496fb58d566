from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from timesheet_mcp.storage import InMemorySessionStore, StorageError
from timesheet_mcp.tracking import (
    CommuteDirection,
    NoChange,
    SessionEnded,
    SessionStarted,
    TimeTrackingService,
    TrackingSession,
    TrackingState,
)

NOW = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


def _service(store: InMemorySessionStore | None = None) -> tuple[TimeTrackingService, InMemorySessionStore]:
    store = store or InMemorySessionStore()
    return TimeTrackingService(store, clock=lambda: NOW), store


def _at(minutes: int) -> datetime:
    return NOW + timedelta(minutes=minutes)


class FailingCommitStore(InMemorySessionStore):
    async def commit(self, **kwargs) -> None:
        raise StorageError("disk full")


def test_start_then_toggle_off() -> None:
    service, store = _service()

    started = asyncio.run(service.start_state(1, TrackingState.WORKING, _at(0)))
    assert isinstance(started, SessionStarted)
    assert started.ended is None

    ended = asyncio.run(service.start_state(1, TrackingState.WORKING, _at(60)))
    assert isinstance(ended, SessionEnded)
    assert ended.ended.id == started.started.id
    assert ended.ended.ended_at == _at(60)

    assert asyncio.run(store.get_active_session(1)) is None
    stored = asyncio.run(store.get_session(started.started.id))
    assert stored.ended_at == _at(60)


def test_switching_state_ends_previous_in_one_commit() -> None:
    service, store = _service()
    asyncio.run(service.start_state(1, TrackingState.WORKING, _at(0)))
    commits_before = store.commit_count

    result = asyncio.run(service.start_state(1, TrackingState.LUNCH, _at(180)))

    assert isinstance(result, SessionStarted)
    assert result.ended is not None and result.ended.ended_at == _at(180)
    assert result.started.state is TrackingState.LUNCH
    assert store.commit_count == commits_before + 1
    active = asyncio.run(store.get_active_session(1))
    assert active.id == result.started.id


def test_commute_direction_follows_the_day() -> None:
    service, _ = _service()

    morning = asyncio.run(service.start_state(1, TrackingState.COMMUTING, _at(-60)))
    asyncio.run(service.start_state(1, TrackingState.WORKING, _at(-20)))
    evening = asyncio.run(service.start_state(1, TrackingState.COMMUTING, _at(480)))

    assert morning.started.commute_direction is CommuteDirection.TO_WORK
    assert evening.started.commute_direction is CommuteDirection.TO_HOME


def test_commute_twice_without_work_reverses_direction() -> None:
    service, _ = _service()

    asyncio.run(service.start_state(1, TrackingState.COMMUTING, _at(-60)))
    asyncio.run(service.start_state(1, TrackingState.COMMUTING, _at(-30)))
    second = asyncio.run(service.start_state(1, TrackingState.COMMUTING, _at(-10)))

    assert second.started.commute_direction is CommuteDirection.TO_HOME


def test_users_are_independent() -> None:
    service, store = _service()

    asyncio.run(service.start_state(1, TrackingState.WORKING, _at(0)))
    other = asyncio.run(service.start_state(2, TrackingState.WORKING, _at(5)))

    assert isinstance(other, SessionStarted)
    assert len(asyncio.run(store.get_all_active_sessions())) == 2


def test_concurrent_requests_for_one_user_are_serialized() -> None:
    service, store = _service()

    async def race():
        return await asyncio.gather(
            service.start_state(1, TrackingState.WORKING, _at(0)),
            service.start_state(1, TrackingState.WORKING, _at(1)),
        )

    first, second = asyncio.run(race())

    assert isinstance(first, SessionStarted)
    assert isinstance(second, SessionEnded)
    assert asyncio.run(store.get_active_session(1)) is None
    assert len(asyncio.run(store.get_recent_sessions(1, 10))) == 1


def test_storage_failure_leaves_state_unchanged() -> None:
    seeded = TrackingSession(user_id=1, state=TrackingState.WORKING, started_at=_at(-120))
    service, store = _service(FailingCommitStore([seeded]))

    with pytest.raises(StorageError):
        asyncio.run(service.start_state(1, TrackingState.LUNCH, _at(0)))

    active = asyncio.run(store.get_active_session(1))
    assert active.id == seeded.id
    assert active.is_active


def test_idle_request_is_rejected() -> None:
    service, store = _service()
    with pytest.raises(ValueError):
        asyncio.run(service.start_state(1, TrackingState.IDLE, _at(0)))
    assert store.commit_count == 0


def test_no_change_outcome_commits_nothing(monkeypatch) -> None:
    monkeypatch.setattr(
        "timesheet_mcp.tracking.service.decide",
        lambda *args, **kwargs: NoChange(),
    )
    service, store = _service()

    result = asyncio.run(service.start_state(1, TrackingState.WORKING, _at(0)))

    assert isinstance(result, NoChange)
    assert store.commit_count == 0
    assert asyncio.run(store.get_active_session(1)) is None


def test_edits_respect_ownership() -> None:
    completed = TrackingSession(
        user_id=1,
        state=TrackingState.WORKING,
        started_at=_at(-240),
        ended_at=_at(-60),
    )
    service, store = _service(InMemorySessionStore([completed]))

    assert asyncio.run(service.adjust_end_time(2, completed.id, 10)) is None
    assert asyncio.run(service.set_note(1, "missing", "x")) is None

    adjusted = asyncio.run(service.adjust_end_time(1, completed.id, 30))
    assert adjusted.ended_at == _at(-30)
    assert asyncio.run(store.get_session(completed.id)).ended_at == _at(-30)

    moved = asyncio.run(service.adjust_start_time(1, completed.id, -15))
    assert moved.started_at == _at(-255)

    noted = asyncio.run(service.set_note(1, completed.id, "  client visit "))
    assert noted.note == "client visit"


def test_adjusting_active_session_end_is_rejected() -> None:
    service, _ = _service()
    started = asyncio.run(service.start_state(1, TrackingState.WORKING, _at(0)))

    with pytest.raises(ValueError):
        asyncio.run(service.adjust_end_time(1, started.started.id, 10))


def test_status_and_history_queries() -> None:
    service, _ = _service()
    asyncio.run(service.start_state(1, TrackingState.COMMUTING, _at(-60)))
    asyncio.run(service.start_state(1, TrackingState.WORKING, _at(-20)))

    status = asyncio.run(service.get_status(1))
    assert status.state is TrackingState.WORKING

    recent = asyncio.run(service.get_recent_sessions(1, 1))
    assert [session.state for session in recent] == [TrackingState.WORKING]

    today = asyncio.run(service.get_sessions_for_day(1, NOW.date()))
    assert [session.state for session in today] == [TrackingState.COMMUTING, TrackingState.WORKING]

    with pytest.raises(ValueError):
        asyncio.run(service.get_recent_sessions(1, 0))
