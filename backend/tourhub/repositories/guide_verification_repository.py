from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from tourhub.models.guide_verification import GuideVerification, VerificationStatus
from tourhub.repositories.locking import lock_by_id


class GuideVerificationRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        status: str | None = None,
        user_id: UUID | None = None,
    ) -> list[GuideVerification]:
        query = self.db.query(GuideVerification)
        if status is not None:
            query = query.filter(GuideVerification.status == status)
        if user_id is not None:
            query = query.filter(GuideVerification.user_id == user_id)
        return (
            query.order_by(GuideVerification.submitted_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count(self, status: str | None = None) -> int:
        query = self.db.query(GuideVerification)
        if status is not None:
            query = query.filter(GuideVerification.status == status)
        return query.count()

    def get_by_id(self, verification_id: UUID) -> GuideVerification | None:
        return (
            self.db.query(GuideVerification)
            .filter(GuideVerification.id == verification_id)
            .first()
        )

    def get_for_update(self, verification_id: UUID) -> GuideVerification | None:
        return lock_by_id(self.db, GuideVerification, verification_id)

    def get_pending_for_user(self, user_id: UUID) -> GuideVerification | None:
        return (
            self.db.query(GuideVerification)
            .filter(
                GuideVerification.user_id == user_id,
                GuideVerification.status == VerificationStatus.PENDING.value,
            )
            .first()
        )

    def add(
        self,
        *,
        user_id: UUID,
        documents: list[str],
        credentials: dict[str, Any] | None = None,
    ) -> GuideVerification:
        """Stage a pending verification in the current transaction."""
        verification = GuideVerification(
            user_id=user_id,
            documents=documents,
            credentials=credentials,
            status=VerificationStatus.PENDING.value,
        )
        self.db.add(verification)
        self.db.flush()
        return verification
