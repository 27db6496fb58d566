from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from timesheet_mcp.tracking import CommuteDirection, TrackingSession, TrackingState

START = datetime(2025, 3, 3, 8, 0, tzinfo=timezone.utc)


def _completed(hours: float = 2) -> TrackingSession:
    return TrackingSession(
        user_id=1,
        state=TrackingState.WORKING,
        started_at=START,
        ended_at=START + timedelta(hours=hours),
    )


def test_commute_requires_direction() -> None:
    with pytest.raises(ValueError, match="Commute direction must be specified"):
        TrackingSession(user_id=1, state=TrackingState.COMMUTING, started_at=START)


def test_direction_only_for_commutes() -> None:
    with pytest.raises(ValueError):
        TrackingSession(
            user_id=1,
            state=TrackingState.WORKING,
            started_at=START,
            commute_direction=CommuteDirection.TO_WORK,
        )


def test_idle_is_not_a_session_state() -> None:
    with pytest.raises(ValueError):
        TrackingSession(user_id=1, state=TrackingState.IDLE, started_at=START)


def test_end_before_start_rejected() -> None:
    session = TrackingSession(user_id=1, state=TrackingState.LUNCH, started_at=START)
    with pytest.raises(ValueError):
        session.end(START - timedelta(minutes=1))
    session.end(START + timedelta(minutes=30))
    with pytest.raises(ValueError, match="already ended"):
        session.end(START + timedelta(minutes=40))


def test_duration_uses_now_while_active() -> None:
    session = TrackingSession(user_id=1, state=TrackingState.WORKING, started_at=START)
    assert session.duration(START + timedelta(hours=3)) == timedelta(hours=3)
    assert _completed(2).duration(START + timedelta(hours=9)) == timedelta(hours=2)


def test_adjust_end_time() -> None:
    session = _completed(2)
    session.adjust_end_time(-30)
    assert session.ended_at == START + timedelta(hours=1, minutes=30)

    with pytest.raises(ValueError, match="before or equal to start"):
        session.adjust_end_time(-90)

    active = TrackingSession(user_id=1, state=TrackingState.WORKING, started_at=START)
    with pytest.raises(ValueError, match="active session"):
        active.adjust_end_time(10)


def test_adjust_start_time_bounds() -> None:
    session = _completed(2)
    session.adjust_start_time(-15, now=START + timedelta(hours=5))
    assert session.started_at == START - timedelta(minutes=15)

    with pytest.raises(ValueError, match="at or after end time"):
        session.adjust_start_time(200, now=START + timedelta(hours=5))

    active = TrackingSession(user_id=1, state=TrackingState.WORKING, started_at=START)
    with pytest.raises(ValueError, match="future"):
        active.adjust_start_time(10, now=START)
    active.adjust_start_time(5, now=START)
    assert active.started_at == START + timedelta(minutes=5)


def test_note_is_trimmed_and_cleared() -> None:
    session = _completed()
    session.update_note("  standup  ")
    assert session.note == "standup"
    session.update_note("   ")
    assert session.note is None
