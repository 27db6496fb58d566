from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from timesheet_mcp.storage import ConcurrencyConflictError, InMemorySessionStore, StorageError
from timesheet_mcp.tracking import CommuteDirection, TrackingSession, TrackingState

NOW = datetime(2025, 3, 12, 9, 0, tzinfo=timezone.utc)


def _session(state=TrackingState.WORKING, hours_ago: float = 1, ended: bool = False, user_id: int = 1):
    start = NOW - timedelta(hours=hours_ago)
    return TrackingSession(
        user_id=user_id,
        state=state,
        started_at=start,
        ended_at=start + timedelta(minutes=30) if ended else None,
        commute_direction=CommuteDirection.TO_WORK if state is TrackingState.COMMUTING else None,
    )


def test_reads_return_detached_copies() -> None:
    original = _session()
    store = InMemorySessionStore([original])

    fetched = asyncio.run(store.get_session(original.id))
    fetched.note = "changed"

    assert asyncio.run(store.get_session(original.id)).note is None


def test_ending_an_already_ended_session_conflicts() -> None:
    active = _session()
    store = InMemorySessionStore([active])

    first = asyncio.run(store.get_active_session(1))
    second = asyncio.run(store.get_active_session(1))
    first.end(NOW)
    second.end(NOW + timedelta(minutes=1))
    asyncio.run(store.commit(ended=[first]))

    with pytest.raises(ConcurrencyConflictError):
        asyncio.run(store.commit(ended=[second]))

    assert asyncio.run(store.get_session(active.id)).ended_at == NOW


def test_failed_commit_writes_nothing() -> None:
    active = _session()
    store = InMemorySessionStore([active])
    replacement = _session(TrackingState.LUNCH, hours_ago=0)

    with pytest.raises(ConcurrencyConflictError):
        asyncio.run(store.commit(added=[replacement]))

    assert asyncio.run(store.get_session(replacement.id)) is None
    assert store.commit_count == 0


def test_replacing_active_session_in_one_commit() -> None:
    active = _session()
    store = InMemorySessionStore([active])
    closing = asyncio.run(store.get_active_session(1))
    closing.end(NOW)
    replacement = _session(TrackingState.LUNCH, hours_ago=0)

    asyncio.run(store.commit(added=[replacement], ended=[closing]))

    assert asyncio.run(store.get_active_session(1)).id == replacement.id


def test_commit_rejects_unknown_and_unfinished_sessions() -> None:
    store = InMemorySessionStore()
    with pytest.raises(StorageError):
        asyncio.run(store.commit(updated=[_session(ended=True)]))

    active = _session()
    store = InMemorySessionStore([active])
    with pytest.raises(ValueError):
        asyncio.run(store.commit(ended=[active]))


def test_queries() -> None:
    sessions = [
        _session(TrackingState.COMMUTING, hours_ago=3, ended=True),
        _session(TrackingState.WORKING, hours_ago=2, ended=True),
        _session(TrackingState.WORKING, hours_ago=1),
        _session(TrackingState.LUNCH, hours_ago=30, ended=True),
        _session(TrackingState.WORKING, hours_ago=1, user_id=2),
    ]
    store = InMemorySessionStore(sessions)

    recent = asyncio.run(store.get_recent_sessions(1, 2))
    assert [s.id for s in recent] == [sessions[2].id, sessions[1].id]

    last_commute = asyncio.run(store.get_last_commute_session(1, NOW.date()))
    assert last_commute.id == sessions[0].id
    assert asyncio.run(store.get_last_commute_session(1, date(2025, 3, 11))) is None

    assert asyncio.run(store.has_worked_on(1, NOW.date()))
    assert not asyncio.run(store.has_worked_on(1, date(2025, 3, 11)))

    assert len(asyncio.run(store.get_all_active_sessions())) == 2
    in_range = asyncio.run(store.get_sessions_in_range(1, NOW - timedelta(hours=4), NOW))
    assert [s.state for s in in_range] == [
        TrackingState.COMMUTING,
        TrackingState.WORKING,
        TrackingState.WORKING,
    ]

    assert asyncio.run(store.get_average_duration(1, TrackingState.WORKING)) == pytest.approx(0.5)
    assert asyncio.run(store.get_average_duration(2, TrackingState.WORKING)) is None
