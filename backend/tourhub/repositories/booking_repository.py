from datetime import datetime
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from tourhub.models.booking import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus
from tourhub.repositories.locking import lock_by_id


class BookingRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        user_id: UUID | None = None,
        guide_id: UUID | None = None,
        status: str | None = None,
    ) -> list[Booking]:
        query = self.db.query(Booking)
        if user_id is not None:
            query = query.filter(Booking.user_id == user_id)
        if guide_id is not None:
            query = query.filter(Booking.guide_id == guide_id)
        if status is not None:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.created_at.desc()).offset(skip).limit(limit).all()

    def count(
        self,
        user_id: UUID | None = None,
        guide_id: UUID | None = None,
        status: str | None = None,
    ) -> int:
        query = self.db.query(Booking)
        if user_id is not None:
            query = query.filter(Booking.user_id == user_id)
        if guide_id is not None:
            query = query.filter(Booking.guide_id == guide_id)
        if status is not None:
            query = query.filter(Booking.status == status)
        return query.count()

    def get_by_id(self, booking_id: UUID) -> Booking | None:
        return self.db.query(Booking).filter(Booking.id == booking_id).first()

    def get_for_update(self, booking_id: UUID) -> Booking | None:
        return lock_by_id(self.db, Booking, booking_id)

    def get_active_for_destination(self, destination_id: UUID) -> list[Booking]:
        return (
            self.db.query(Booking)
            .filter(
                Booking.destination_id == destination_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .with_for_update()
            .all()
        )

    def get_active_for_participant(self, user_id: UUID) -> list[Booking]:
        """Pending/confirmed bookings where the user is the traveler or the guide."""
        return (
            self.db.query(Booking)
            .filter(
                or_(Booking.user_id == user_id, Booking.guide_id == user_id),
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .with_for_update()
            .all()
        )

    def has_active_booking(self, user_id: UUID, destination_id: UUID) -> bool:
        return (
            self.db.query(Booking)
            .filter(
                Booking.user_id == user_id,
                Booking.destination_id == destination_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .first()
            is not None
        )

    def add(
        self,
        *,
        user_id: UUID,
        destination_id: UUID,
        guide_id: UUID,
        booking_date: datetime,
        notes: str | None = None,
    ) -> Booking:
        """Stage a pending booking in the current transaction."""
        booking = Booking(
            user_id=user_id,
            destination_id=destination_id,
            guide_id=guide_id,
            booking_date=booking_date,
            notes=notes,
            status=BookingStatus.PENDING.value,
        )
        self.db.add(booking)
        self.db.flush()
        return booking

    def detach_destination(self, destination_id: UUID) -> int:
        """Null the destination reference on every booking before it is deleted."""
        return (
            self.db.query(Booking)
            .filter(Booking.destination_id == destination_id)
            .update({Booking.destination_id: None}, synchronize_session=False)
        )
