"""ModerationLog model: the append-only ledger of lifecycle transitions."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint, func

from tourhub.core.database import Base
from tourhub.models.shared import UUIDType, enum_check, generate_uuid, utc_now


class ContentType(str, Enum):
    DESTINATION = "destination"
    GUIDE_VERIFICATION = "guide_verification"
    BOOKING = "booking"
    USER = "user"


class ModerationLog(Base):
    """One row per committed transition. Rows are never updated or deleted.

    ``content_id`` has no foreign key: ledger rows outlive their content.
    """

    __tablename__ = "moderation_logs"
    __table_args__ = (
        enum_check("content_type", ContentType, "ck_moderation_logs_content_type"),
        UniqueConstraint(
            "content_type", "content_id", "sequence", name="uq_moderation_logs_content_sequence"
        ),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    content_type = Column(String(30), nullable=False, index=True)
    content_id = Column(UUIDType, nullable=False, index=True)
    # Position of the entry in its item's history, starting at 1.
    sequence = Column(Integer, nullable=False)
    action = Column(String(50), nullable=False, index=True)
    moderator_id = Column(UUIDType, nullable=True, index=True)
    submitted_by = Column(UUIDType, nullable=True, index=True)
    # State of the content after the transition; ``None`` once deleted.
    status = Column(String(30), nullable=True, index=True)
    previous_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    notes = Column(String(2000), nullable=True)
    rejection_reason = Column(String(1000), nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), index=True
    )
