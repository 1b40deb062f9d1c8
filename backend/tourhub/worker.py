import logging
from typing import Any

from tourhub.core import database
from tourhub.services.notification_service import NotificationEvent, NotificationService
from tourhub.tasks import redis_settings

logger = logging.getLogger(__name__)


async def deliver_notification_task(ctx: dict[str, Any], payload: dict[str, Any]) -> int:
    """Background task: write inbox rows for a workflow notification event.

    Returns the number of notifications created.
    """
    db = database.SessionLocal()
    try:
        event = NotificationEvent.from_payload(payload)
        delivered = NotificationService(db).deliver(event)
        logger.info(
            "Delivered %d '%s' notifications for %s %s",
            len(delivered),
            event.category,
            event.resource_type,
            event.resource_id,
        )
        return len(delivered)
    finally:
        db.close()


class WorkerSettings:
    functions = [
        deliver_notification_task,
    ]
    redis_settings = redis_settings
