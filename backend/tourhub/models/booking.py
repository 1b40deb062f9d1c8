from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String, func

from tourhub.core.database import Base
from tourhub.models.shared import UUIDType, enum_check, generate_uuid


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (enum_check("status", BookingStatus, "ck_bookings_status"),)

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    # Historical bookings outlive their destination and guide.
    destination_id = Column(
        UUIDType,
        ForeignKey("destinations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # Snapshot of the destination's creator at booking time; never re-synced.
    guide_id = Column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    booking_date = Column(DateTime(timezone=True), nullable=False)
    notes = Column(String(2000), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
