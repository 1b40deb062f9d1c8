"""Booking API endpoints."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from tourhub.core.auth import get_current_principal
from tourhub.core.database import get_db
from tourhub.core.errors import NotFoundError
from tourhub.core.permissions import AuthenticatedPrincipal, default_resolver
from tourhub.models.booking import Booking, BookingStatus
from tourhub.models.moderation_log import ContentType
from tourhub.repositories.booking_repository import BookingRepository
from tourhub.schemas.booking import (
    BookingCreate,
    BookingNotesUpdate,
    BookingResponse,
    BookingTransitionResponse,
)
from tourhub.schemas.moderation_log import TransitionRequest
from tourhub.services.event_dispatcher import EventDispatcher, get_event_dispatcher
from tourhub.services.workflow_service import TransitionResult, WorkflowService

router = APIRouter()

TRANSITION_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"description": "Action not allowed in the current status"},
    401: {"description": "Unauthorized – invalid or missing access token"},
    403: {"description": "Not a participant of this booking"},
    404: {"description": "Booking not found"},
    409: {"description": "Concurrent modification"},
}


def _transition_response(result: TransitionResult) -> BookingTransitionResponse:
    return BookingTransitionResponse(
        booking=BookingResponse.model_validate(result.entity),
        moderation_log_id=result.moderation_log_id,
        previous_status=result.previous_status,
        new_status=result.new_status,
    )


def _is_participant(principal: AuthenticatedPrincipal, booking: Booking) -> bool:
    return principal.id in (booking.user_id, booking.guide_id)


@router.get(
    "/",
    response_model=list[BookingResponse],
    summary="List bookings",
    responses={401: {"description": "Unauthorized – invalid or missing access token"}},
)
async def list_bookings(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    status: BookingStatus | None = None,
    as_guide: bool = False,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> list[Booking]:
    """List the caller's bookings as traveler, or as guide with ``as_guide=true``.

    Staff holding ``view_bookings`` see every booking unless ``as_guide`` is set.
    """
    repo = BookingRepository(db)
    status_filter = status.value if status else None
    filters: dict[str, Any] = {"status": status_filter}
    if as_guide:
        filters["guide_id"] = principal.id
    elif not default_resolver.check(principal, "view_bookings"):
        filters["user_id"] = principal.id
    response.headers["X-Total-Count"] = str(repo.count(**filters))
    return repo.get_all(skip=skip, limit=limit, **filters)


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get booking",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        404: {"description": "Booking not found"},
    },
)
async def get_booking(
    booking_id: UUID,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> Booking:
    booking = BookingRepository(db).get_by_id(booking_id)
    if booking is None or (
        not _is_participant(principal, booking)
        and not default_resolver.check(principal, "view_bookings")
    ):
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


@router.post(
    "/",
    response_model=BookingTransitionResponse,
    status_code=201,
    summary="Create booking",
    responses={
        400: {"description": "Destination not bookable or date in the past"},
        401: {"description": "Unauthorized – invalid or missing access token"},
        404: {"description": "Destination not found"},
        409: {"description": "An open booking for this destination already exists"},
    },
)
async def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> BookingTransitionResponse:
    result = WorkflowService(db, dispatcher=dispatcher).create_booking(principal, data)
    return _transition_response(result)


@router.put(
    "/{booking_id}/notes",
    response_model=BookingTransitionResponse,
    summary="Update booking notes",
    responses=TRANSITION_RESPONSES,
)
async def update_booking_notes(
    booking_id: UUID,
    data: BookingNotesUpdate,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> BookingTransitionResponse:
    result = WorkflowService(db, dispatcher=dispatcher).update_booking_notes(
        principal, booking_id, data
    )
    return _transition_response(result)


def _transition(
    booking_id: UUID,
    action: str,
    data: TransitionRequest | None,
    db: Session,
    principal: AuthenticatedPrincipal,
    dispatcher: EventDispatcher,
) -> BookingTransitionResponse:
    result = WorkflowService(db, dispatcher=dispatcher).request_transition(
        principal, ContentType.BOOKING, booking_id, action, data.model_dump() if data else {}
    )
    return _transition_response(result)


@router.post(
    "/{booking_id}/confirm",
    response_model=BookingTransitionResponse,
    summary="Confirm booking",
    responses=TRANSITION_RESPONSES,
)
async def confirm_booking(
    booking_id: UUID,
    data: TransitionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> BookingTransitionResponse:
    """Confirm a pending booking. Only the booking's guide may confirm."""
    return _transition(booking_id, "confirm", data, db, principal, dispatcher)


@router.post(
    "/{booking_id}/complete",
    response_model=BookingTransitionResponse,
    summary="Complete booking",
    responses=TRANSITION_RESPONSES,
)
async def complete_booking(
    booking_id: UUID,
    data: TransitionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> BookingTransitionResponse:
    """Mark a confirmed booking as completed. Only the booking's guide may complete."""
    return _transition(booking_id, "complete", data, db, principal, dispatcher)


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingTransitionResponse,
    summary="Cancel booking",
    responses=TRANSITION_RESPONSES,
)
async def cancel_booking(
    booking_id: UUID,
    data: TransitionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> BookingTransitionResponse:
    """Cancel a pending or confirmed booking (traveler, guide or staff)."""
    return _transition(booking_id, "cancel", data, db, principal, dispatcher)
