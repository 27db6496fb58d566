"""Pure transition rules for tracking requests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TypeAlias

from .models import CommuteDirection, TrackingSession, TrackingState


@dataclass(frozen=True, slots=True)
class StartNewSession:
    """Start ``new``; when ``session_to_end`` is set it is replaced exclusively."""

    new: TrackingSession
    session_to_end: TrackingSession | None = None


@dataclass(frozen=True, slots=True)
class EndSession:
    """Toggle-off of the active session."""

    session_to_end: TrackingSession


@dataclass(frozen=True, slots=True)
class NoChange:
    pass


Outcome: TypeAlias = StartNewSession | EndSession | NoChange


def next_commute_direction(
    last_direction: CommuteDirection | None,
    has_worked_today: bool,
) -> CommuteDirection:
    """Direction for a new commute.

    No previous commute means heading to work. Having worked today means heading
    home. Otherwise the user commuted without working in between, so the previous
    direction is reversed.
    """

    if last_direction is None:
        return CommuteDirection.TO_WORK
    if has_worked_today:
        return CommuteDirection.TO_HOME
    return last_direction.opposite()


def _new_session(
    user_id: int,
    state: TrackingState,
    timestamp: datetime,
    last_direction: CommuteDirection | None,
    has_worked_today: bool,
) -> TrackingSession:
    direction = None
    if state is TrackingState.COMMUTING:
        direction = next_commute_direction(last_direction, has_worked_today)
    return TrackingSession(
        user_id=user_id,
        state=state,
        started_at=timestamp,
        commute_direction=direction,
    )


def decide(
    user_id: int,
    requested_state: TrackingState,
    timestamp: datetime,
    active_session: TrackingSession | None,
    last_commute_direction: CommuteDirection | None,
    has_worked_today: bool,
) -> Outcome:
    """Decide what a tracking request does. Never mutates its inputs."""

    if requested_state is TrackingState.IDLE:
        raise ValueError("Cannot explicitly request idle state; request the active state again to end it")

    if active_session is None:
        return StartNewSession(
            new=_new_session(user_id, requested_state, timestamp, last_commute_direction, has_worked_today)
        )

    if active_session.state is requested_state:
        return EndSession(session_to_end=active_session)

    return StartNewSession(
        new=_new_session(user_id, requested_state, timestamp, last_commute_direction, has_worked_today),
        session_to_end=active_session,
    )


__all__ = [
    "EndSession",
    "NoChange",
    "Outcome",
    "StartNewSession",
    "decide",
    "next_commute_direction",
]
