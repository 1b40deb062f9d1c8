"""Destination API endpoints: catalogue reads and the moderation lifecycle."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from tourhub.core.auth import get_current_principal
from tourhub.core.database import get_db
from tourhub.core.errors import NotFoundError, PermissionDeniedError
from tourhub.core.permissions import AuthenticatedPrincipal, default_resolver
from tourhub.models.destination import Destination, DestinationStatus
from tourhub.models.moderation_log import ContentType
from tourhub.repositories.destination_repository import DestinationRepository
from tourhub.schemas.destination import (
    DestinationCreate,
    DestinationDeleteResponse,
    DestinationResponse,
    DestinationTransitionResponse,
    DestinationUpdate,
)
from tourhub.schemas.moderation_log import RejectionRequest, TransitionRequest
from tourhub.services.event_dispatcher import EventDispatcher, get_event_dispatcher
from tourhub.services.workflow_service import TransitionResult, WorkflowService

router = APIRouter()

TRANSITION_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"description": "Action not allowed in the current status"},
    401: {"description": "Unauthorized – invalid or missing access token"},
    403: {"description": "Insufficient permissions"},
    404: {"description": "Destination not found"},
    409: {"description": "Concurrent modification or duplicate submission"},
}


def _can_view(principal: AuthenticatedPrincipal, destination: Destination) -> bool:
    if destination.status == DestinationStatus.APPROVED.value:
        return True
    return destination.created_by == principal.id or default_resolver.check(
        principal, "view_pending_destinations"
    )


def _transition_response(result: TransitionResult) -> DestinationTransitionResponse:
    return DestinationTransitionResponse(
        destination=DestinationResponse.model_validate(result.entity),
        moderation_log_id=result.moderation_log_id,
        previous_status=result.previous_status,
        new_status=result.new_status,
    )


def _transition(
    destination_id: UUID,
    action: str,
    payload: dict[str, Any],
    db: Session,
    principal: AuthenticatedPrincipal,
    dispatcher: EventDispatcher,
) -> DestinationTransitionResponse:
    service = WorkflowService(db, dispatcher=dispatcher)
    result = service.request_transition(
        principal, ContentType.DESTINATION, destination_id, action, payload
    )
    return _transition_response(result)


@router.get(
    "/",
    response_model=list[DestinationResponse],
    summary="List destinations",
    responses={401: {"description": "Unauthorized – invalid or missing access token"}},
)
async def list_destinations(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    status: DestinationStatus | None = None,
    mine: bool = False,
    featured: bool | None = None,
    region: str | None = None,
    order_by: str | None = Query(default=None),
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> list[Destination]:
    """List destinations.

    Staff may filter by any status. Everyone else sees approved destinations,
    or with ``mine=true`` their own destinations in any status.
    """
    repo = DestinationRepository(db)
    created_by = principal.id if mine else None
    status_filter = status.value if status else None
    if not mine and not default_resolver.check(principal, "view_pending_destinations"):
        status_filter = DestinationStatus.APPROVED.value
    response.headers["X-Total-Count"] = str(repo.count(status=status_filter, created_by=created_by))
    return repo.get_all(
        skip=skip,
        limit=limit,
        status=status_filter,
        created_by=created_by,
        featured=featured,
        region=region,
        order_by=order_by,
    )


@router.get(
    "/{destination_id}",
    response_model=DestinationResponse,
    summary="Get destination",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        404: {"description": "Destination not found"},
    },
)
async def get_destination(
    destination_id: UUID,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> Destination:
    """Get a destination. Unpublished destinations are visible to their owner and staff."""
    repo = DestinationRepository(db)
    destination = repo.get_by_id(destination_id)
    if destination is None or not _can_view(principal, destination):
        raise NotFoundError(f"Destination {destination_id} not found")
    if destination.status == DestinationStatus.APPROVED.value and destination.created_by != principal.id:
        repo.increment_view_count(destination_id)
        db.refresh(destination)
    return destination


@router.post(
    "/",
    response_model=DestinationTransitionResponse,
    status_code=201,
    summary="Create destination",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        403: {"description": "Only verified guides and staff can create destinations"},
        422: {"description": "Validation error"},
    },
)
async def create_destination(
    data: DestinationCreate,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> DestinationTransitionResponse:
    """Create a destination in draft status."""
    result = WorkflowService(db, dispatcher=dispatcher).create_destination(principal, data)
    return _transition_response(result)


@router.put(
    "/{destination_id}",
    response_model=DestinationTransitionResponse,
    summary="Edit destination",
    responses=TRANSITION_RESPONSES,
)
async def edit_destination(
    destination_id: UUID,
    data: DestinationUpdate,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> DestinationTransitionResponse:
    """Edit a destination. A non-admin edit of approved content returns it to draft."""
    result = WorkflowService(db, dispatcher=dispatcher).edit_destination(
        principal, destination_id, data
    )
    return _transition_response(result)


@router.post(
    "/{destination_id}/submit",
    response_model=DestinationTransitionResponse,
    summary="Submit destination for moderation",
    responses=TRANSITION_RESPONSES,
)
async def submit_destination(
    destination_id: UUID,
    data: TransitionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> DestinationTransitionResponse:
    payload = data.model_dump() if data else {}
    return _transition(destination_id, "submit", payload, db, principal, dispatcher)


@router.post(
    "/{destination_id}/withdraw",
    response_model=DestinationTransitionResponse,
    summary="Withdraw a destination returned for revision back to draft",
    responses=TRANSITION_RESPONSES,
)
async def withdraw_destination(
    destination_id: UUID,
    data: TransitionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> DestinationTransitionResponse:
    payload = data.model_dump() if data else {}
    return _transition(destination_id, "withdraw", payload, db, principal, dispatcher)


@router.post(
    "/{destination_id}/reset",
    response_model=DestinationTransitionResponse,
    summary="Reset a rejected destination to draft",
    responses=TRANSITION_RESPONSES,
)
async def reset_destination(
    destination_id: UUID,
    data: TransitionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> DestinationTransitionResponse:
    payload = data.model_dump() if data else {}
    return _transition(destination_id, "reset", payload, db, principal, dispatcher)


@router.post(
    "/{destination_id}/approve",
    response_model=DestinationTransitionResponse,
    summary="Approve destination",
    responses=TRANSITION_RESPONSES,
)
async def approve_destination(
    destination_id: UUID,
    data: TransitionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> DestinationTransitionResponse:
    payload = data.model_dump() if data else {}
    return _transition(destination_id, "approve", payload, db, principal, dispatcher)


@router.post(
    "/{destination_id}/reject",
    response_model=DestinationTransitionResponse,
    summary="Reject destination",
    responses=TRANSITION_RESPONSES,
)
async def reject_destination(
    destination_id: UUID,
    data: RejectionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> DestinationTransitionResponse:
    """Reject a pending destination. ``reason`` is required."""
    payload = data.model_dump() if data else {}
    return _transition(destination_id, "reject", payload, db, principal, dispatcher)


@router.post(
    "/{destination_id}/request_revision",
    response_model=DestinationTransitionResponse,
    summary="Request changes to a pending destination",
    responses=TRANSITION_RESPONSES,
)
async def request_destination_revision(
    destination_id: UUID,
    data: TransitionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> DestinationTransitionResponse:
    payload = data.model_dump() if data else {}
    return _transition(destination_id, "request_revision", payload, db, principal, dispatcher)


@router.post(
    "/{destination_id}/feature",
    response_model=DestinationTransitionResponse,
    summary="Feature an approved destination",
    responses=TRANSITION_RESPONSES,
)
async def feature_destination(
    destination_id: UUID,
    data: TransitionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> DestinationTransitionResponse:
    payload = data.model_dump() if data else {}
    return _transition(destination_id, "feature", payload, db, principal, dispatcher)


@router.post(
    "/{destination_id}/unfeature",
    response_model=DestinationTransitionResponse,
    summary="Remove a destination from the featured list",
    responses=TRANSITION_RESPONSES,
)
async def unfeature_destination(
    destination_id: UUID,
    data: TransitionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> DestinationTransitionResponse:
    payload = data.model_dump() if data else {}
    return _transition(destination_id, "unfeature", payload, db, principal, dispatcher)


@router.delete(
    "/{destination_id}",
    response_model=DestinationDeleteResponse,
    summary="Delete destination",
    responses={
        **TRANSITION_RESPONSES,
        409: {"description": "Active bookings reference this destination"},
    },
)
async def delete_destination(
    destination_id: UUID,
    cascade: bool = Query(default=False, description="Admin only: cancel active bookings"),
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> DestinationDeleteResponse:
    """Delete a destination. Owners may delete drafts; admins may delete anything."""
    if cascade and not principal.is_admin:
        raise PermissionDeniedError("Only administrators can cascade a deletion")
    result = WorkflowService(db, dispatcher=dispatcher).request_transition(
        principal, ContentType.DESTINATION, destination_id, "delete", {"cascade": cascade}
    )
    return DestinationDeleteResponse(
        id=destination_id,
        moderation_log_id=result.moderation_log_id,  # type: ignore[arg-type]
        cancelled_bookings=[b.id for b in result.related.get("cancelled_bookings", [])],
    )
