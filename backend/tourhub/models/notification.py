"""Notification model for the in-app notification inbox."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, func

from tourhub.core.database import Base
from tourhub.models.shared import UUIDType, generate_uuid, utc_now


class Notification(Base):
    """Notification model - one inbox row per recipient per workflow event."""

    __tablename__ = "notifications"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    recipient_id = Column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category = Column(String(50), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(String(1000), nullable=False)
    resource_type = Column(String(50), nullable=True)
    resource_id = Column(UUIDType, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
