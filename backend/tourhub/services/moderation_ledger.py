"""Append-only record of every lifecycle transition.

Appends join the caller's transaction: a transition and its ledger entry
are committed together or not at all. The ledger also doubles as the
moderation work queue.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tourhub.core.errors import ConflictError
from tourhub.models.moderation_log import ContentType, ModerationLog
from tourhub.repositories.moderation_log_repository import ModerationLogRepository

PENDING_STATUS = "pending"

# Content that goes through staff review. Bookings and accounts are
# ledgered too but are not queue work.
MODERATED_CONTENT_TYPES = (ContentType.DESTINATION, ContentType.GUIDE_VERIFICATION)


@dataclass(frozen=True)
class LedgerPage:
    items: list[ModerationLog]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class ModerationLedger:
    def __init__(self, db: Session):
        self.repo = ModerationLogRepository(db)

    def append(
        self,
        content_type: ContentType,
        content_id: UUID,
        action: str,
        *,
        status: str | None,
        moderator_id: UUID | None = None,
        submitted_by: UUID | None = None,
        previous_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        notes: str | None = None,
        rejection_reason: str | None = None,
    ) -> ModerationLog:
        """Stage one entry. Losing a race for the item's next sequence is a CONFLICT."""
        try:
            return self.repo.add(
                content_type=content_type.value,
                content_id=content_id,
                action=action,
                moderator_id=moderator_id,
                submitted_by=submitted_by,
                status=status,
                previous_values=previous_values,
                new_values=new_values,
                notes=notes,
                rejection_reason=rejection_reason,
            )
        except IntegrityError as exc:
            raise ConflictError(
                f"Another transition was recorded for {content_type.value} {content_id}"
            ) from exc

    def query(
        self,
        content_type: ContentType | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
        content_types: Iterable[ContentType] | None = None,
    ) -> LedgerPage:
        """Entries newest first, with the total for the same filters.

        Filtering by ``status`` matches items whose *latest* entry has that
        status, so processed submissions drop out of the queue.
        """
        page = max(page, 1)
        filters: dict[str, Any] = {
            "content_type": content_type.value if content_type else None,
            "status": status,
            "current_only": status is not None,
            "content_types": [c.value for c in content_types] if content_types else None,
        }
        items = self.repo.get_all(skip=(page - 1) * limit, limit=limit, **filters)
        return LedgerPage(items=items, total=self.repo.count(**filters), page=page, limit=limit)

    def history(self, content_type: ContentType, content_id: UUID) -> list[ModerationLog]:
        return self.repo.get_history(content_type.value, content_id)

    def latest(self, content_type: ContentType, content_id: UUID) -> ModerationLog | None:
        return self.repo.get_latest(content_type.value, content_id)

    def has_open_submission(self, content_type: ContentType, content_id: UUID) -> bool:
        """True while the newest entry for the item is still awaiting review."""
        entry = self.latest(content_type, content_id)
        return entry is not None and entry.status == PENDING_STATUS
