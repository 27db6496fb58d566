"""Timesheet MCP diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import asdict

from timesheet_mcp.config import TimesheetSettings
from timesheet_mcp.reporting import ReportingService
from timesheet_mcp.storage import ChromaSessionStore, ChromaUnavailableError


def load_store(settings: TimesheetSettings) -> ChromaSessionStore:
    try:
        store = ChromaSessionStore(settings.chroma_persist_path)
        store.ping()
        return store
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)


def cmd_active(args: argparse.Namespace) -> None:
    settings = TimesheetSettings()
    store = load_store(settings)
    try:
        sessions = asyncio.run(store.get_all_active_sessions())
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)
    if args.json:
        payload = [
            {
                "id": session.id,
                "user_id": session.user_id,
                "state": session.state.value,
                "commute_direction": session.commute_direction.value if session.commute_direction else None,
                "started_at": session.started_at.isoformat(),
            }
            for session in sessions
        ]
        print(json.dumps(payload, indent=2))
    else:
        for session in sessions:
            print(f"{session.id} user={session.user_id} [{session.state.value}] since {session.started_at.isoformat()}")


def cmd_report(args: argparse.Namespace) -> None:
    settings = TimesheetSettings()
    store = load_store(settings)
    reporting = ReportingService(store, commute_pattern_days=settings.commute_pattern_days)
    try:
        report = asyncio.run(reporting.get_daily_averages(args.user_id, args.days))
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)
    print(json.dumps({"user_id": args.user_id, "days": args.days, **asdict(report)}, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Timesheet MCP diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_active = sub.add_parser("active", help="List active sessions for all users")
    p_active.add_argument("--json", action="store_true", help="Output JSON")
    p_active.set_defaults(func=cmd_active)

    p_report = sub.add_parser("report", help="Show daily averages for one user")
    p_report.add_argument("--user-id", type=int, required=True)
    p_report.add_argument("--days", type=int, default=7, help="Trailing window in days")
    p_report.set_defaults(func=cmd_report)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
