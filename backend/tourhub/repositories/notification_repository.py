"""Inbox storage. Every read is scoped to one recipient."""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.orm import Query, Session

from tourhub.core.sorting import apply_order_by
from tourhub.models.notification import Notification

SORTABLE_FIELDS = frozenset({"created_at", "category"})


class NotificationRepository:
    def __init__(self, db: Session):
        self.db = db

    def _inbox(self, recipient_id: UUID) -> Query:  # type: ignore[type-arg]
        return self.db.query(Notification).filter(Notification.recipient_id == recipient_id)

    def _unread(self, recipient_id: UUID) -> Query:  # type: ignore[type-arg]
        return self._inbox(recipient_id).filter(Notification.is_read.is_(False))

    def add_many(
        self,
        recipient_ids: Iterable[UUID],
        *,
        category: str,
        title: str,
        message: str,
        resource_type: str | None = None,
        resource_id: UUID | None = None,
    ) -> list[Notification]:
        """Write one row per recipient in a single commit."""
        notifications = [
            Notification(
                recipient_id=recipient_id,
                category=category,
                title=title,
                message=message,
                resource_type=resource_type,
                resource_id=resource_id,
            )
            for recipient_id in recipient_ids
        ]
        if not notifications:
            return []
        self.db.add_all(notifications)
        self.db.commit()
        for notification in notifications:
            self.db.refresh(notification)
        return notifications

    def get_for_recipient(self, notification_id: UUID, recipient_id: UUID) -> Notification | None:
        return self._inbox(recipient_id).filter(Notification.id == notification_id).first()

    def get_all(
        self,
        recipient_id: UUID,
        skip: int = 0,
        limit: int = 50,
        category: str | None = None,
        is_read: bool | None = None,
        order_by: str | None = None,
    ) -> list[Notification]:
        query = self._inbox(recipient_id)
        if category is not None:
            query = query.filter(Notification.category == category)
        if is_read is not None:
            query = query.filter(Notification.is_read.is_(is_read))
        query = apply_order_by(query, Notification, order_by, allowed_fields=SORTABLE_FIELDS)
        return query.offset(skip).limit(limit).all()

    def count_unread(self, recipient_id: UUID) -> int:
        return self._unread(recipient_id).count()

    def mark_as_read(self, notification: Notification) -> Notification:
        if not notification.is_read:
            notification.is_read = True  # type: ignore[assignment]
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, recipient_id: UUID) -> int:
        count = self._unread(recipient_id).update({"is_read": True}, synchronize_session=False)
        self.db.commit()
        return count
