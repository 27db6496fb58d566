from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import pytest

import timesheet_mcp.server as server_module
from timesheet_mcp.config import TimesheetSettings
from timesheet_mcp.server import create_server
from timesheet_mcp.storage import ChromaUnavailableError, InMemorySessionStore, InMemoryUserStore


class StubFastMCP:
    def __init__(self, *args, **kwargs):
        self.options = kwargs
        self.tools: dict[str, object] = {}

    def resource(self, *args, **kwargs):
        def decorator(fn):
            name = kwargs.get("name") or (args[0] if args else fn.__name__)
            setattr(self, name, fn)
            return fn

        return decorator

    def tool(self, *args, **kwargs):
        def decorator(fn):
            self.tools[kwargs.get("name", fn.__name__)] = fn
            return fn

        return decorator


class BrokenChromaStore:
    def __init__(self, *_, **__):
        pass

    def ping(self) -> bool:
        raise ChromaUnavailableError("chromadb is not installed")


@pytest.fixture(autouse=True)
def stub_fastmcp(monkeypatch):
    monkeypatch.setattr(server_module, "FastMCP", StubFastMCP)


def _settings(tmp_path, **overrides) -> TimesheetSettings:
    return TimesheetSettings(chroma_persist_path=tmp_path / "chroma", **overrides)


def test_status_resource_reports_memory_backend(tmp_path) -> None:
    server = create_server(_settings(tmp_path, storage_backend="memory"))

    payload = json.loads(asyncio.run(server.timesheet_status(SimpleNamespace(request_id="req-1"))))

    assert payload["storage"]["backend"] == "memory"
    assert payload["storage"]["available"] is True
    assert payload["storage"]["active_sessions"] == 0
    assert payload["monitors"]["running"] is False
    assert [task["name"] for task in payload["monitors"]["tasks"]] == [
        "auto_shutdown",
        "forgot_shutdown",
        "lunch_reminder",
        "work_hours_alert",
    ]
    assert payload["pending_mnemonics"] == 0
    assert payload["request_id"] == "req-1"
    assert len(server.tools) == 13


def test_falls_back_to_memory_when_chroma_unavailable(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(server_module, "ChromaSessionStore", BrokenChromaStore)
    monkeypatch.setattr(server_module, "ChromaUserStore", BrokenChromaStore)

    server = create_server(_settings(tmp_path, storage_backend="chroma"))

    assert isinstance(server.session_store, InMemorySessionStore)
    assert server.storage_metadata["backend"] == "memory"
    assert "not installed" in server.storage_metadata["error"]


def test_provided_stores_are_used(tmp_path) -> None:
    sessions = InMemorySessionStore()
    users = InMemoryUserStore()

    server = create_server(_settings(tmp_path), session_store=sessions, user_store=users)

    assert server.session_store is sessions
    assert server.user_store is users
    assert server.storage_metadata["backend"] == "provided"


def test_monitor_intervals_follow_settings(tmp_path) -> None:
    server = create_server(
        _settings(
            tmp_path,
            storage_backend="memory",
            auto_shutdown_interval_seconds=60,
            monitor_startup_delay_seconds=0,
        )
    )

    tasks = {task.name: task for task in server.scheduler.tasks}
    assert tasks["auto_shutdown"].interval == 60
    assert tasks["forgot_shutdown"].interval == 180
    assert all(task.startup_delay == 0 for task in tasks.values())
