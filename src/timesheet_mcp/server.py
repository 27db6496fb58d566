"""FastMCP server bootstrap for Timesheet."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from fastmcp import Context, FastMCP

from . import __version__
from .auth import MnemonicService
from .config import TimesheetSettings, get_settings
from .monitors import (
    AutoShutdownMonitor,
    ForgotShutdownMonitor,
    LunchReminderMonitor,
    MonitorScheduler,
    PeriodicTask,
    WorkHoursAlertMonitor,
)
from .notifications import NotificationOutbox
from .reporting import ReportingService
from .storage import (
    ChromaSessionStore,
    ChromaUnavailableError,
    ChromaUserStore,
    InMemorySessionStore,
    InMemoryUserStore,
    SessionStore,
    UserStore,
)
from .tools import register_tools
from .tracking import TimeTrackingService, UserLocks
from .users import UserSettingsService

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for the Timesheet server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def _open_stores(settings: TimesheetSettings, metadata: dict[str, Any]) -> tuple[SessionStore, UserStore]:
    if settings.storage_backend == "memory":
        metadata["available"] = True
        return InMemorySessionStore(), InMemoryUserStore()

    try:
        session_store = ChromaSessionStore(settings.chroma_persist_path)
        user_store = ChromaUserStore(settings.chroma_persist_path)
        session_store.ping()
        user_store.ping()
        metadata["available"] = True
        return session_store, user_store
    except ChromaUnavailableError as exc:
        metadata["error"] = str(exc)
        metadata["backend"] = "memory"
        logger.warning(
            "Chroma unavailable; sessions will not survive a restart",
            extra={"path": str(settings.chroma_persist_path), "error": str(exc)},
        )
        return InMemorySessionStore(), InMemoryUserStore()


def build_scheduler(
    settings: TimesheetSettings,
    *,
    auto_shutdown: AutoShutdownMonitor,
    forgot_shutdown: ForgotShutdownMonitor,
    lunch_reminder: LunchReminderMonitor,
    work_hours_alert: WorkHoursAlertMonitor,
) -> MonitorScheduler:
    delay = settings.monitor_startup_delay_seconds
    return MonitorScheduler(
        [
            PeriodicTask(
                "auto_shutdown",
                auto_shutdown.check_and_shutdown,
                settings.auto_shutdown_interval_seconds,
                delay,
            ),
            PeriodicTask(
                "forgot_shutdown",
                forgot_shutdown.check_and_notify,
                settings.forgot_shutdown_interval_seconds,
                delay,
            ),
            PeriodicTask(
                "lunch_reminder",
                lunch_reminder.check_and_remind,
                settings.lunch_reminder_interval_seconds,
                delay,
            ),
            PeriodicTask(
                "work_hours_alert",
                work_hours_alert.check_and_alert,
                settings.work_hours_alert_interval_seconds,
                delay,
            ),
        ]
    )


def create_server(
    settings: Optional[TimesheetSettings] = None,
    *,
    session_store: SessionStore | None = None,
    user_store: UserStore | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with services, monitors and tools wired together."""

    settings = settings or get_settings()

    storage_metadata: dict[str, Any] = {
        "backend": settings.storage_backend,
        "available": False,
        "path": str(settings.chroma_persist_path),
        "error": None,
    }
    if session_store is None or user_store is None:
        session_store, user_store = _open_stores(settings, storage_metadata)
    else:
        storage_metadata.update({"backend": "provided", "available": True})

    locks = UserLocks()
    outbox = NotificationOutbox()
    tracking = TimeTrackingService(session_store, locks=locks, clock=clock)
    reporting = ReportingService(
        session_store,
        user_store=user_store,
        clock=clock,
        commute_pattern_days=settings.commute_pattern_days,
    )
    settings_service = UserSettingsService(user_store, clock=clock)
    mnemonics = MnemonicService()

    scheduler = build_scheduler(
        settings,
        auto_shutdown=AutoShutdownMonitor(session_store, user_store, locks=locks, clock=clock),
        forgot_shutdown=ForgotShutdownMonitor(session_store, user_store, outbox, clock=clock),
        lunch_reminder=LunchReminderMonitor(session_store, user_store, outbox, clock=clock),
        work_hours_alert=WorkHoursAlertMonitor(session_store, user_store, outbox, clock=clock),
    )

    server = FastMCP(
        name="Timesheet MCP",
        version=__version__,
        instructions=(
            "Timesheet tracks commuting, working and lunch sessions per user. Use the tools "
            "to start and stop activities, correct sessions, read reports and manage "
            "preferences. Background monitors end or flag sessions that run too long."
        ),
    )

    handles = register_tools(
        server,
        tracking=tracking,
        reporting=reporting,
        settings_service=settings_service,
        mnemonics=mnemonics,
        outbox=outbox,
        clock=clock,
    )

    @server.resource(
        "resource://timesheet/status",
        name="timesheet_status",
        title="Timesheet MCP Status",
        description="Provides the current runtime status for the Timesheet MCP server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    async def status_resource(context: Context) -> str:
        """Return a JSON string summarizing basic runtime state."""

        storage_error = None
        try:
            active_count = len(await session_store.get_all_active_sessions())
        except Exception as exc:  # pragma: no cover - status must still render
            active_count = None
            storage_error = str(exc)

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "storage": {**storage_metadata, "active_sessions": active_count, "query_error": storage_error},
            "monitors": {
                "running": scheduler.is_running,
                "tasks": [
                    {"name": task.name, "interval_seconds": task.interval} for task in scheduler.tasks
                ],
            },
            "pending_mnemonics": mnemonics.pending_count,
            "queued_notifications": outbox.pending_count,
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    setattr(server, "session_store", session_store)
    setattr(server, "user_store", user_store)
    setattr(server, "storage_metadata", storage_metadata)
    setattr(server, "tool_handles", handles)
    setattr(server, "scheduler", scheduler)
    setattr(server, "outbox", outbox)
    return server


async def serve(server: FastMCP) -> None:
    """Run the monitors alongside the MCP server until the server exits."""

    scheduler: MonitorScheduler = getattr(server, "scheduler")
    scheduler.start()
    try:
        await server.run_async()
    finally:
        await scheduler.stop()


def main() -> None:
    """Entry point for running the Timesheet MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logger.info(
        "Launching Timesheet MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "storage_backend": getattr(server, "storage_metadata", {}).get("backend"),
            "storage_available": getattr(server, "storage_metadata", {}).get("available"),
        },
    )
    asyncio.run(serve(server))


if __name__ == "__main__":
    main()
