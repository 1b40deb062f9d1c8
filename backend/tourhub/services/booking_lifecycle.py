"""Booking lifecycle.

Who may act on a booking (the traveler or the snapshotted guide) is decided
by the workflow before validation; this table only decides legality.
``refunded`` is written by the payment collaborator, never by an action.
"""

from datetime import UTC, datetime

from tourhub.core.errors import InvalidDataError
from tourhub.models.booking import BookingStatus as B
from tourhub.services.state_machine import Lifecycle, Transition

BOOKING_LIFECYCLE = Lifecycle.define(
    "booking",
    states=B,
    transitions=[
        Transition(B.PENDING.value, "confirm", B.CONFIRMED.value),
        Transition(B.PENDING.value, "cancel", B.CANCELLED.value),
        Transition(B.CONFIRMED.value, "complete", B.COMPLETED.value),
        Transition(B.CONFIRMED.value, "cancel", B.CANCELLED.value),
        Transition(B.PENDING.value, "update_notes", B.PENDING.value),
        Transition(B.CONFIRMED.value, "update_notes", B.CONFIRMED.value),
    ],
    terminal=(B.COMPLETED, B.CANCELLED, B.REFUNDED),
)


def validate_booking_transition(current: str, action: str) -> str:
    return BOOKING_LIFECYCLE.validate(current, action)


def validate_booking_date(booking_date: datetime, now: datetime | None = None) -> None:
    """Reject booking dates in the past. Naive datetimes are treated as UTC."""
    now = now or datetime.now(UTC)
    if booking_date.tzinfo is None:
        booking_date = booking_date.replace(tzinfo=UTC)
    if booking_date < now:
        raise InvalidDataError("Booking date cannot be in the past")
