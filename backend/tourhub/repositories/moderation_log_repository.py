"""Repository for the append-only moderation ledger."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func
from sqlalchemy.orm import Query, Session

from tourhub.models.moderation_log import ModerationLog


class ModerationLogRepository:
    """Rows are only ever inserted. There is no update or delete path."""

    def __init__(self, db: Session):
        self.db = db

    def add(
        self,
        *,
        content_type: str,
        content_id: UUID,
        action: str,
        moderator_id: UUID | None = None,
        submitted_by: UUID | None = None,
        status: str | None = None,
        previous_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        notes: str | None = None,
        rejection_reason: str | None = None,
    ) -> ModerationLog:
        """Stage an entry in the caller's transaction. The caller commits."""
        entry = ModerationLog(
            content_type=content_type,
            content_id=content_id,
            sequence=self.next_sequence(content_type, content_id),
            action=action,
            moderator_id=moderator_id,
            submitted_by=submitted_by,
            status=status,
            previous_values=previous_values,
            new_values=new_values,
            notes=notes,
            rejection_reason=rejection_reason,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def next_sequence(self, content_type: str, content_id: UUID) -> int:
        current = (
            self.db.query(func.max(ModerationLog.sequence))
            .filter(
                ModerationLog.content_type == content_type,
                ModerationLog.content_id == content_id,
            )
            .scalar()
        )
        return (current or 0) + 1

    def get_by_id(self, entry_id: UUID) -> ModerationLog | None:
        return self.db.query(ModerationLog).filter(ModerationLog.id == entry_id).first()

    def _filtered(
        self,
        content_type: str | None = None,
        content_id: UUID | None = None,
        action: str | None = None,
        moderator_id: UUID | None = None,
        status: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        current_only: bool = False,
        content_types: Iterable[str] | None = None,
    ) -> Query:  # type: ignore[type-arg]
        query = self.db.query(ModerationLog)
        if current_only:
            latest = (
                self.db.query(
                    ModerationLog.content_type.label("content_type"),
                    ModerationLog.content_id.label("content_id"),
                    func.max(ModerationLog.sequence).label("sequence"),
                )
                .group_by(ModerationLog.content_type, ModerationLog.content_id)
                .subquery()
            )
            query = query.join(
                latest,
                and_(
                    ModerationLog.content_type == latest.c.content_type,
                    ModerationLog.content_id == latest.c.content_id,
                    ModerationLog.sequence == latest.c.sequence,
                ),
            )
        if content_type is not None:
            query = query.filter(ModerationLog.content_type == content_type)
        if content_types is not None:
            query = query.filter(ModerationLog.content_type.in_(list(content_types)))
        if content_id is not None:
            query = query.filter(ModerationLog.content_id == content_id)
        if action is not None:
            query = query.filter(ModerationLog.action == action)
        if moderator_id is not None:
            query = query.filter(ModerationLog.moderator_id == moderator_id)
        if status is not None:
            query = query.filter(ModerationLog.status == status)
        if start_date is not None:
            query = query.filter(ModerationLog.created_at >= start_date)
        if end_date is not None:
            query = query.filter(ModerationLog.created_at <= end_date)
        return query

    def get_all(self, skip: int = 0, limit: int = 100, **filters: Any) -> list[ModerationLog]:
        return (
            self._filtered(**filters)
            .order_by(ModerationLog.created_at.desc(), ModerationLog.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count(self, **filters: Any) -> int:
        return self._filtered(**filters).count()

    def get_history(self, content_type: str, content_id: UUID) -> list[ModerationLog]:
        """Every entry for one item, oldest first."""
        return (
            self._filtered(content_type=content_type, content_id=content_id)
            .order_by(ModerationLog.sequence.asc())
            .all()
        )

    def get_latest(self, content_type: str, content_id: UUID) -> ModerationLog | None:
        return (
            self._filtered(content_type=content_type, content_id=content_id)
            .order_by(ModerationLog.sequence.desc())
            .first()
        )
