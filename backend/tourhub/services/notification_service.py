"""Service for creating and managing in-app notifications."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from tourhub.models.notification import Notification
from tourhub.repositories.notification_repository import NotificationRepository
from tourhub.repositories.user_repository import UserRepository

# Notification categories
CATEGORY_DESTINATION = "destination"
CATEGORY_GUIDE = "guide"
CATEGORY_BOOKING = "booking"
CATEGORY_ACCOUNT = "account"


@dataclass(frozen=True)
class NotificationEvent:
    """A domain event addressed to one or more users.

    Travels through the task queue as a plain dict (see :meth:`to_payload`).
    """

    category: str
    title: str
    message: str
    recipient_ids: tuple[UUID, ...]
    resource_type: str | None = None
    resource_id: UUID | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "title": self.title,
            "message": self.message,
            "recipient_ids": [str(r) for r in self.recipient_ids],
            "resource_type": self.resource_type,
            "resource_id": str(self.resource_id) if self.resource_id else None,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> NotificationEvent:
        resource_id = payload.get("resource_id")
        return cls(
            category=payload["category"],
            title=payload["title"],
            message=payload["message"],
            recipient_ids=tuple(UUID(r) for r in payload.get("recipient_ids", [])),
            resource_type=payload.get("resource_type"),
            resource_id=UUID(resource_id) if resource_id else None,
        )


def event_for(
    recipients: Iterable[UUID | None],
    *,
    category: str,
    title: str,
    message: str,
    resource_type: str | None = None,
    resource_id: UUID | None = None,
    exclude: UUID | None = None,
) -> NotificationEvent | None:
    """Build an event, dropping empty recipients and the acting user.

    Returns None when nobody is left to notify.
    """
    unique: list[UUID] = []
    for recipient in recipients:
        if recipient is None or recipient == exclude or recipient in unique:
            continue
        unique.append(recipient)
    if not unique:
        return None
    return NotificationEvent(
        category=category,
        title=title,
        message=message,
        recipient_ids=tuple(unique),
        resource_type=resource_type,
        resource_id=resource_id,
    )


class NotificationService:
    """Service for creating in-app notifications from workflow events."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = NotificationRepository(db)

    def notify(
        self,
        *,
        recipient_id: UUID,
        category: str,
        title: str,
        message: str,
        resource_type: str | None = None,
        resource_id: UUID | None = None,
    ) -> Notification:
        """Create a single notification."""
        (notification,) = self.repo.add_many(
            [recipient_id],
            category=category,
            title=title,
            message=message,
            resource_type=resource_type,
            resource_id=resource_id,
        )
        return notification

    def deliver(self, event: NotificationEvent) -> list[Notification]:
        """Write one inbox row per recipient that still exists."""
        users = UserRepository(self.db)
        recipients = [rid for rid in event.recipient_ids if users.get_by_id(rid) is not None]
        return self.repo.add_many(
            recipients,
            category=event.category,
            title=event.title,
            message=event.message,
            resource_type=event.resource_type,
            resource_id=event.resource_id,
        )
