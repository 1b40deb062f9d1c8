"""Post-commit side effects of workflow operations.

Nothing in here may undo or fail a committed transition: audit writes use
their own session and every failure is logged and swallowed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from fastapi import BackgroundTasks, Request

from tourhub.core import database
from tourhub.core.config import settings
from tourhub.services.audit_service import AuditService, RequestContext
from tourhub.services.notification_service import NotificationEvent
from tourhub.tasks import enqueue_notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    """One pending audit entry, described by the AuditService method to call."""

    method: str
    kwargs: dict[str, Any] = field(default_factory=dict)


async def publish_notifications(events: Iterable[NotificationEvent]) -> None:
    """Enqueue notification delivery for each event."""
    for event in events:
        try:
            await enqueue_notification(event.to_payload())
        except Exception:
            logger.exception(
                "Failed to enqueue '%s' notification for %s %s",
                event.category,
                event.resource_type,
                event.resource_id,
            )


class EventDispatcher:
    def __init__(
        self,
        background_tasks: BackgroundTasks | None = None,
        context: RequestContext | None = None,
    ):
        self.background_tasks = background_tasks
        self.context = context or RequestContext()

    def record_audit(self, records: Iterable[AuditRecord]) -> int:
        """Write audit entries in a fresh session. Returns how many landed."""
        written = 0
        db = database.SessionLocal()
        try:
            service = AuditService(db, self.context)
            for record in records:
                try:
                    getattr(service, record.method)(**record.kwargs)
                    written += 1
                except Exception:
                    db.rollback()
                    logger.exception(
                        "Failed to write audit entry %s for %s",
                        record.method,
                        record.kwargs.get("resource_id"),
                    )
        finally:
            db.close()
        return written

    def schedule_notifications(self, events: Iterable[NotificationEvent]) -> None:
        pending = list(events)
        if not pending or not settings.NOTIFICATIONS_ENABLED:
            return
        if self.background_tasks is None:
            logger.debug("No background task runner; dropping %d notifications", len(pending))
            return
        self.background_tasks.add_task(publish_notifications, pending)

    def dispatch(
        self,
        audit_records: Iterable[AuditRecord],
        events: Iterable[NotificationEvent],
    ) -> None:
        self.record_audit(audit_records)
        self.schedule_notifications(events)


def get_event_dispatcher(request: Request, background_tasks: BackgroundTasks) -> EventDispatcher:
    """FastAPI dependency binding the dispatcher to the current request."""
    context = RequestContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        request_method=request.method,
        request_url=str(request.url),
    )
    return EventDispatcher(background_tasks, context)
