"""Tests for post-commit audit writes and notification scheduling."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi import BackgroundTasks

from tourhub.core.config import settings
from tourhub.repositories.audit_log_repository import AuditLogRepository
from tourhub.services.audit_service import RequestContext
from tourhub.services.event_dispatcher import (
    AuditRecord,
    EventDispatcher,
    publish_notifications,
)
from tourhub.services.notification_service import NotificationEvent


def _event(**overrides):
    fields = {
        "category": "destination",
        "title": "Destination approved",
        "message": "Approved",
        "recipient_ids": (uuid4(),),
        "resource_type": "destination",
        "resource_id": uuid4(),
    }
    fields.update(overrides)
    return NotificationEvent(**fields)


class TestRecordAudit:
    def test_writes_in_own_session(self, db_session):
        resource_id = uuid4()
        context = RequestContext(ip_address="10.1.1.1", request_method="POST")
        dispatcher = EventDispatcher(context=context)
        written = dispatcher.record_audit(
            [
                AuditRecord("log_create", {"resource_type": "booking", "resource_id": resource_id}),
                AuditRecord(
                    "log_status_change",
                    {
                        "resource_type": "booking",
                        "resource_id": resource_id,
                        "action": "booking_confirmed",
                        "old_status": "pending",
                        "new_status": "confirmed",
                    },
                ),
            ]
        )
        assert written == 2
        logs = AuditLogRepository(db_session).get_by_resource("booking", resource_id)
        assert {log.action for log in logs} == {"created", "booking_confirmed"}
        assert all(log.ip_address == "10.1.1.1" for log in logs)

    def test_failures_are_logged_and_swallowed(self, db_session, caplog):
        resource_id = uuid4()
        dispatcher = EventDispatcher()
        with patch(
            "tourhub.services.audit_service.AuditService.log_create",
            side_effect=RuntimeError("disk full"),
        ):
            written = dispatcher.record_audit(
                [
                    AuditRecord("log_create", {"resource_type": "booking", "resource_id": resource_id}),
                    AuditRecord(
                        "log_update",
                        {
                            "resource_type": "booking",
                            "resource_id": resource_id,
                            "old_data": {"notes": None},
                            "new_data": {"notes": "Vegetarian"},
                        },
                    ),
                ]
            )
        assert written == 1
        assert "Failed to write audit entry log_create" in caplog.text
        logs = AuditLogRepository(db_session).get_by_resource("booking", resource_id)
        assert [log.action for log in logs] == ["updated"]


class TestScheduleNotifications:
    def test_adds_background_task(self):
        background_tasks = MagicMock(spec=BackgroundTasks)
        events = [_event()]
        EventDispatcher(background_tasks).schedule_notifications(events)
        background_tasks.add_task.assert_called_once_with(publish_notifications, events)

    def test_no_events(self):
        background_tasks = MagicMock(spec=BackgroundTasks)
        EventDispatcher(background_tasks).schedule_notifications([])
        background_tasks.add_task.assert_not_called()

    def test_disabled_by_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "NOTIFICATIONS_ENABLED", False)
        background_tasks = MagicMock(spec=BackgroundTasks)
        EventDispatcher(background_tasks).schedule_notifications([_event()])
        background_tasks.add_task.assert_not_called()

    def test_without_background_tasks(self):
        # Nothing to schedule on; must not raise.
        EventDispatcher().schedule_notifications([_event()])

    def test_dispatch_runs_both(self):
        dispatcher = EventDispatcher(MagicMock(spec=BackgroundTasks))
        with patch.object(dispatcher, "record_audit") as record, patch.object(
            dispatcher, "schedule_notifications"
        ) as schedule:
            dispatcher.dispatch([], [])
        record.assert_called_once_with([])
        schedule.assert_called_once_with([])


class TestPublishNotifications:
    @pytest.mark.asyncio
    async def test_enqueues_each_event(self, enqueued):
        events = [_event(), _event(category="booking")]
        await publish_notifications(events)
        assert enqueued.await_count == 2
        enqueued.assert_any_await("deliver_notification_task", events[0].to_payload())
        enqueued.assert_any_await("deliver_notification_task", events[1].to_payload())

    @pytest.mark.asyncio
    async def test_enqueue_failure_is_swallowed(self, caplog):
        failing = AsyncMock(side_effect=ConnectionError("redis down"))
        with patch("tourhub.tasks.enqueue_task", failing):
            await publish_notifications([_event(), _event()])
        assert failing.await_count == 2
        assert "Failed to enqueue 'destination' notification" in caplog.text
