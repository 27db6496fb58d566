"""Session model, transition rules and the tracking service."""

from .locks import UserLocks
from .models import CommuteDirection, TrackingSession, TrackingState
from .service import SessionEnded, SessionStarted, TimeTrackingService, TrackingResult
from .state_machine import EndSession, NoChange, Outcome, StartNewSession, decide

__all__ = [
    "CommuteDirection",
    "EndSession",
    "NoChange",
    "Outcome",
    "SessionEnded",
    "SessionStarted",
    "StartNewSession",
    "TimeTrackingService",
    "TrackingResult",
    "TrackingSession",
    "TrackingState",
    "UserLocks",
    "decide",
]
