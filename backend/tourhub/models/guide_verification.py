from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, String, func, text

from tourhub.core.database import Base
from tourhub.models.shared import UUIDType, enum_check, generate_uuid, utc_now


class VerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class GuideVerification(Base):
    """A guide application. At most one ``pending`` row exists per user."""

    __tablename__ = "guide_verifications"
    __table_args__ = (
        enum_check("status", VerificationStatus, "ck_guide_verifications_status"),
        Index(
            "uq_guide_verifications_one_pending",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    credentials = Column(JSON, nullable=True)
    documents = Column(JSON, nullable=False, default=list)
    status = Column(
        String(20), nullable=False, default=VerificationStatus.PENDING.value, index=True
    )
    reviewed_by = Column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(String(1000), nullable=True)
    submitted_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
