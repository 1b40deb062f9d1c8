"""Tests for worker background tasks."""

from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from tourhub.repositories.notification_repository import NotificationRepository
from tourhub.services.notification_service import NotificationEvent
from tourhub.tasks import redis_settings
from tourhub.worker import WorkerSettings, deliver_notification_task


def _payload(*recipient_ids, resource_id=None):
    return NotificationEvent(
        category="destination_approved",
        title="Destination approved",
        message="Lake Toba is now live",
        recipient_ids=tuple(recipient_ids),
        resource_type="destination",
        resource_id=resource_id or uuid4(),
    ).to_payload()


class TestDeliverNotificationTask:
    @pytest.mark.asyncio
    async def test_writes_one_row_per_recipient(self, db_session, users):
        resource_id = uuid4()
        result = await deliver_notification_task(
            {}, _payload(users["guide"].id, users["guide2"].id, resource_id=resource_id)
        )

        assert result == 2
        inbox = NotificationRepository(db_session).get_all(users["guide"].id)
        assert len(inbox) == 1
        assert inbox[0].category == "destination_approved"
        assert inbox[0].resource_id == resource_id
        assert not inbox[0].is_read

    @pytest.mark.asyncio
    async def test_skips_unknown_recipients(self, db_session, users):
        result = await deliver_notification_task({}, _payload(users["traveler"].id, uuid4()))
        assert result == 1

    @pytest.mark.asyncio
    async def test_no_recipients(self, users):
        assert await deliver_notification_task({}, _payload()) == 0

    @pytest.mark.asyncio
    async def test_logs_delivery(self, users, caplog):
        with caplog.at_level("INFO", logger="tourhub.worker"):
            await deliver_notification_task({}, _payload(users["admin"].id))
        assert "Delivered 1 'destination_approved' notifications" in caplog.text

    @pytest.mark.asyncio
    async def test_session_closed_on_error(self):
        mock_session = MagicMock()
        with (
            patch("tourhub.worker.database.SessionLocal", return_value=mock_session),
            patch("tourhub.worker.NotificationService") as mock_service,
        ):
            mock_service.return_value.deliver.side_effect = RuntimeError("db down")
            with pytest.raises(RuntimeError, match="db down"):
                await deliver_notification_task({}, _payload(uuid4()))

        mock_session.close.assert_called_once()


class TestWorkerSettings:
    def test_functions_registered(self):
        assert deliver_notification_task in WorkerSettings.functions

    def test_redis_settings(self):
        assert WorkerSettings.redis_settings is redis_settings
