"""Tool registration for Timesheet MCP."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Literal, assert_never

from fastmcp import Context, FastMCP

from ..auth import MnemonicService
from ..notifications import NotificationOutbox
from ..reporting import ReportingService
from ..reporting.models import CommutePattern, DailyBreakdownRow
from ..tracking import (
    CommuteDirection,
    NoChange,
    SessionEnded,
    SessionStarted,
    TimeTrackingService,
    TrackingSession,
    TrackingState,
)
from ..users import User, UserSettingsService

logger = logging.getLogger(__name__)

StateName = Literal["commuting", "working", "lunch"]
SettingName = Literal[
    "utc_offset_minutes",
    "max_work_hours",
    "max_commute_hours",
    "max_lunch_hours",
    "lunch_reminder",
    "target_work_hours",
    "forgot_shutdown_threshold_percent",
]


@dataclass(slots=True)
class ToolHandles:
    start_tracking: Any
    tracking_status: Any
    recent_sessions: Any
    adjust_session: Any
    set_session_note: Any
    period_report: Any
    daily_averages: Any
    commute_patterns: Any
    daily_breakdown: Any
    update_settings: Any
    generate_mnemonic: Any
    redeem_mnemonic: Any
    pending_notifications: Any


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _session_payload(session: TrackingSession | None, now: datetime) -> dict[str, Any] | None:
    if session is None:
        return None
    return {
        "id": session.id,
        "state": session.state.value,
        "commute_direction": session.commute_direction.value if session.commute_direction else None,
        "started_at": session.started_at.isoformat(),
        "ended_at": session.ended_at.isoformat() if session.ended_at else None,
        "is_active": session.is_active,
        "duration_hours": round(session.duration(now).total_seconds() / 3600, 2),
        "note": session.note,
    }


def _user_payload(user: User) -> dict[str, Any]:
    return user.model_dump(mode="json")


def _pattern_payload(pattern: CommutePattern) -> dict[str, Any]:
    return {
        "day_of_week": pattern.day_name,
        "session_count": pattern.session_count,
        "average_duration_hours": round(pattern.average_duration_hours, 3),
        "optimal_start_hour": pattern.optimal_start_hour,
        "shortest_duration_hours": (
            round(pattern.shortest_duration_hours, 3) if pattern.shortest_duration_hours is not None else None
        ),
    }


def _row_payload(row: DailyBreakdownRow) -> dict[str, Any]:
    return {
        "date": row.day.isoformat(),
        "has_activity": row.has_activity,
        "work_hours": round(row.work_hours, 2),
        "commute_to_work_hours": round(row.commute_to_work_hours, 2),
        "commute_to_home_hours": round(row.commute_to_home_hours, 2),
        "lunch_hours": round(row.lunch_hours, 2),
        "total_duration_hours": (
            round(row.total_duration_hours, 2) if row.total_duration_hours is not None else None
        ),
    }


def _parse_optional_number(value: str | None) -> float | None:
    if value is None or value.strip().lower() in {"", "off", "none", "null"}:
        return None
    return float(value)


def register_tools(
    server: FastMCP,
    *,
    tracking: TimeTrackingService,
    reporting: ReportingService,
    settings_service: UserSettingsService,
    mnemonics: MnemonicService,
    outbox: NotificationOutbox,
    clock: Callable[[], datetime] | None = None,
) -> ToolHandles:
    """Register Timesheet's MCP tools on the server."""

    now = clock or (lambda: datetime.now(timezone.utc))

    async def _require_user(user_id: int) -> User:
        user = await settings_service.get_user(user_id)
        if user is None:
            raise ValueError(f"User {user_id} is not registered; redeem a mnemonic first")
        return user

    async def _start_tracking(
        user_id: int,
        state: StateName,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Start, stop or switch the tracked activity."""

        await _require_user(user_id)
        result = await tracking.start_state(user_id, TrackingState(state))
        current = now()

        match result:
            case SessionStarted(started=started, ended=ended):
                payload = {
                    "result": "started",
                    "started": _session_payload(started, current),
                    "ended": _session_payload(ended, current),
                }
            case SessionEnded(ended=ended):
                payload = {"result": "ended", "started": None, "ended": _session_payload(ended, current)}
            case NoChange():
                payload = {"result": "no_change", "started": None, "ended": None}
            case _:
                assert_never(result)

        _emit_log(
            context,
            "info",
            "Tracking request handled",
            extra={"user_id": user_id, "state": state, "result": payload["result"]},
        )
        return payload

    async def _tracking_status(user_id: int) -> dict[str, Any]:
        """Return the active session, if any."""

        await _require_user(user_id)
        active = await tracking.get_status(user_id)
        return {"user_id": user_id, "active": _session_payload(active, now())}

    async def _recent_sessions(user_id: int, count: int = 10) -> list[dict[str, Any]]:
        """List the user's most recent sessions, newest first."""

        await _require_user(user_id)
        current = now()
        return [_session_payload(s, current) for s in await tracking.get_recent_sessions(user_id, count)]

    async def _adjust_session(
        user_id: int,
        session_id: str,
        minutes: int,
        boundary: Literal["start", "end"] = "end",
    ) -> dict[str, Any]:
        """Shift a session's start or end by a number of minutes."""

        await _require_user(user_id)
        if boundary == "start":
            session = await tracking.adjust_start_time(user_id, session_id, minutes)
        else:
            session = await tracking.adjust_end_time(user_id, session_id, minutes)
        if session is None:
            raise ValueError(f"Unknown session '{session_id}'")
        return _session_payload(session, now())

    async def _set_session_note(user_id: int, session_id: str, note: str | None = None) -> dict[str, Any]:
        """Attach a note to a session; an empty note clears it."""

        await _require_user(user_id)
        session = await tracking.set_note(user_id, session_id, note)
        if session is None:
            raise ValueError(f"Unknown session '{session_id}'")
        return _session_payload(session, now())

    async def _period_report(user_id: int, start: str, end: str) -> dict[str, Any]:
        """Totals per activity between two ISO-8601 instants (UTC when no offset is given)."""

        await _require_user(user_id)
        aggregate = await reporting.get_period_aggregate(user_id, _parse_datetime(start), _parse_datetime(end))
        return {
            "start": aggregate.start.isoformat(),
            "end": aggregate.end.isoformat(),
            "total_work_hours": round(aggregate.total_work_hours, 2),
            "total_commute_hours": round(aggregate.total_commute_hours, 2),
            "total_lunch_hours": round(aggregate.total_lunch_hours, 2),
            "work_days_count": aggregate.work_days_count,
            "total_duration_hours": (
                round(aggregate.total_duration_hours, 2) if aggregate.total_duration_hours is not None else None
            ),
        }

    async def _daily_averages(user_id: int, days: int = 7) -> dict[str, Any]:
        """Average hours per work day over the trailing number of days."""

        await _require_user(user_id)
        report = await reporting.get_daily_averages(user_id, days)
        return {
            "days": days,
            "days_included": report.days_included,
            "total_work_days": report.total_work_days,
            "average_work_hours": round(report.average_work_hours, 2),
            "average_commute_hours": round(report.average_commute_hours, 2),
            "average_commute_to_work_hours": round(report.average_commute_to_work_hours, 2),
            "average_commute_to_home_hours": round(report.average_commute_to_home_hours, 2),
            "average_lunch_hours": round(report.average_lunch_hours, 2),
            "average_total_duration_hours": round(report.average_total_duration_hours, 2),
        }

    async def _commute_patterns(
        user_id: int,
        direction: Literal["to_work", "to_home"] = "to_work",
    ) -> list[dict[str, Any]]:
        """Commute statistics per weekday with the best start hour where known."""

        await _require_user(user_id)
        patterns = await reporting.get_commute_patterns(user_id, CommuteDirection(direction))
        return [_pattern_payload(pattern) for pattern in patterns]

    async def _daily_breakdown(user_id: int, start_date: str, end_date: str) -> list[dict[str, Any]]:
        """One row per date from start_date (inclusive) to end_date (exclusive)."""

        await _require_user(user_id)
        rows = await reporting.get_daily_breakdown(
            user_id, date.fromisoformat(start_date), date.fromisoformat(end_date)
        )
        return [_row_payload(row) for row in rows]

    async def _update_settings(
        user_id: int,
        setting: SettingName,
        value: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Change one preference. Use "off" or omit the value to disable optional settings.

        ``lunch_reminder`` takes ``HH:MM``; the other settings take numbers.
        """

        await _require_user(user_id)
        if setting == "utc_offset_minutes":
            if value is None:
                raise ValueError("utc_offset_minutes requires a value")
            user = await settings_service.update_utc_offset(user_id, int(value))
        elif setting == "max_work_hours":
            user = await settings_service.update_auto_shutdown_limit(
                user_id, TrackingState.WORKING, _parse_optional_number(value)
            )
        elif setting == "max_commute_hours":
            user = await settings_service.update_auto_shutdown_limit(
                user_id, TrackingState.COMMUTING, _parse_optional_number(value)
            )
        elif setting == "max_lunch_hours":
            user = await settings_service.update_auto_shutdown_limit(
                user_id, TrackingState.LUNCH, _parse_optional_number(value)
            )
        elif setting == "lunch_reminder":
            if value is None or value.strip().lower() in {"", "off", "none", "null"}:
                user = await settings_service.update_lunch_reminder(user_id, None)
            else:
                hour, _, minute = value.strip().partition(":")
                user = await settings_service.update_lunch_reminder(user_id, int(hour), int(minute or 0))
        elif setting == "target_work_hours":
            user = await settings_service.update_target_work_hours(user_id, _parse_optional_number(value))
        elif setting == "forgot_shutdown_threshold_percent":
            percent = _parse_optional_number(value)
            user = await settings_service.update_forgot_shutdown_threshold(
                user_id, int(percent) if percent is not None else None
            )
        else:
            raise ValueError(f"Unknown setting '{setting}'")

        _emit_log(context, "info", "Updated setting", extra={"user_id": user_id, "setting": setting})
        return _user_payload(user)

    def _generate_mnemonic(context: Context | None = None) -> dict[str, Any]:
        """Issue a one-time 24-word registration passphrase."""

        mnemonic = mnemonics.issue()
        _emit_log(context, "info", "Generated registration mnemonic")
        return {"mnemonic": str(mnemonic), "word_count": len(mnemonic.words)}

    async def _redeem_mnemonic(
        user_id: int,
        phrase: str,
        username: str | None = None,
        utc_offset_minutes: int = 0,
    ) -> dict[str, Any]:
        """Consume a passphrase and register (or log in) the user."""

        if not mnemonics.validate_and_consume(phrase):
            return {"accepted": False, "user": None}
        user = await settings_service.register(user_id, username, utc_offset_minutes)
        return {"accepted": True, "user": _user_payload(user)}

    async def _pending_notifications(user_id: int) -> list[dict[str, Any]]:
        """Return and clear reminders queued for the user by the monitors."""

        await _require_user(user_id)
        return [
            {"kind": item.kind, "created_at": item.created_at.isoformat(), **item.payload}
            for item in outbox.drain(user_id)
        ]

    tool_start = server.tool(
        name="start_tracking",
        description=(
            "Track commuting, working or lunch. Requesting the running activity again stops it; "
            "requesting another activity switches to it."
        ),
    )(_start_tracking)
    tool_status = server.tool(
        name="tracking_status",
        description="Show the user's currently running session.",
    )(_tracking_status)
    tool_recent = server.tool(
        name="recent_sessions",
        description="List the most recent sessions, newest first.",
    )(_recent_sessions)
    tool_adjust = server.tool(
        name="adjust_session",
        description="Move a session's start or end by the given number of minutes (negative moves earlier).",
    )(_adjust_session)
    tool_note = server.tool(
        name="set_session_note",
        description="Set or clear the note on a session.",
    )(_set_session_note)
    tool_period = server.tool(
        name="period_report",
        description="Total work, commute and lunch hours between two ISO-8601 instants.",
    )(_period_report)
    tool_averages = server.tool(
        name="daily_averages",
        description="Average hours per work day over the last N days.",
    )(_daily_averages)
    tool_patterns = server.tool(
        name="commute_patterns",
        description="Commute durations per weekday and the start hour with the shortest average.",
    )(_commute_patterns)
    tool_breakdown = server.tool(
        name="daily_breakdown",
        description="Per-day hours for a date range, including days without activity.",
    )(_daily_breakdown)
    tool_settings = server.tool(
        name="update_settings",
        description=(
            "Update a preference: UTC offset, auto-shutdown caps, lunch reminder, "
            "daily work target or forgot-shutdown threshold."
        ),
    )(_update_settings)
    tool_generate = server.tool(
        name="generate_mnemonic",
        description="Issue a one-time 24-word passphrase for registration or login.",
        annotations={
            "safety": {
                "level": "caution",
                "notes": "The passphrase is a credential; deliver it only to the intended user",
            }
        },
    )(_generate_mnemonic)
    tool_redeem = server.tool(
        name="redeem_mnemonic",
        description="Consume a passphrase and register the user; each passphrase works once.",
    )(_redeem_mnemonic)
    tool_notifications = server.tool(
        name="pending_notifications",
        description="Fetch and clear reminders produced by the background monitors.",
    )(_pending_notifications)

    return ToolHandles(
        start_tracking=tool_start,
        tracking_status=tool_status,
        recent_sessions=tool_recent,
        adjust_session=tool_adjust,
        set_session_note=tool_note,
        period_report=tool_period,
        daily_averages=tool_averages,
        commute_patterns=tool_patterns,
        daily_breakdown=tool_breakdown,
        update_settings=tool_settings,
        generate_mnemonic=tool_generate,
        redeem_mnemonic=tool_redeem,
        pending_notifications=tool_notifications,
    )


__all__ = ["register_tools", "ToolHandles"]


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Log through the module logger, tagged with the MCP request id when available."""

    payload = dict(extra or {})
    request_id = getattr(context, "request_id", None) if context is not None else None
    if request_id is not None:
        payload["request_id"] = request_id
    log_method = getattr(logger, level, logger.info)
    log_method(message, extra=payload)
