from __future__ import annotations

import asyncio

import pytest

from timesheet_mcp.notifications import NotificationOutbox
from timesheet_mcp.tracking import TrackingState


def test_outbox_caps_each_user_queue() -> None:
    outbox = NotificationOutbox(max_per_user=2)

    for elapsed in (10.0, 11.0, 12.0):
        asyncio.run(outbox.send_forgot_shutdown_reminder(1, TrackingState.WORKING, elapsed, 8.0))
    asyncio.run(outbox.send_lunch_reminder(2))

    assert outbox.pending_count == 3
    queued = outbox.drain(1)
    assert [item.payload["elapsed_hours"] for item in queued] == [11.0, 12.0]


def test_drain_leaves_other_users_queued() -> None:
    outbox = NotificationOutbox()
    asyncio.run(outbox.send_lunch_reminder(1))
    asyncio.run(outbox.send_work_hours_complete(2, 8.0, 8.5))

    assert [item.kind for item in outbox.drain(1)] == ["lunch_reminder"]
    assert outbox.drain(1) == []
    assert outbox.drain(3) == []
    assert outbox.pending_count == 1
    assert outbox.drain(2)[0].payload == {"target_hours": 8.0, "actual_hours": 8.5}


def test_outbox_rejects_empty_queue_size() -> None:
    with pytest.raises(ValueError):
        NotificationOutbox(max_per_user=0)
