"""Notification inbox API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tourhub.core.auth import get_current_principal
from tourhub.core.database import get_db
from tourhub.core.errors import NotFoundError
from tourhub.core.permissions import AuthenticatedPrincipal
from tourhub.repositories.notification_repository import NotificationRepository
from tourhub.schemas.notification import (
    NotificationCountResponse,
    NotificationMarkAllResponse,
    NotificationResponse,
)

router = APIRouter()


@router.get(
    "/",
    response_model=list[NotificationResponse],
    summary="List notifications",
    responses={401: {"description": "Unauthorized – invalid or missing access token"}},
)
async def list_notifications(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    category: str | None = None,
    is_read: bool | None = None,
    order_by: str | None = Query(default=None),
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> list[NotificationResponse]:
    """List the caller's notifications with optional filters."""
    repo = NotificationRepository(db)
    notifications = repo.get_all(
        recipient_id=principal.id,
        skip=skip,
        limit=limit,
        category=category,
        is_read=is_read,
        order_by=order_by,
    )
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.get(
    "/unread_count",
    response_model=NotificationCountResponse,
    summary="Get unread notification count",
    responses={401: {"description": "Unauthorized – invalid or missing access token"}},
)
async def get_unread_count(
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> NotificationCountResponse:
    repo = NotificationRepository(db)
    return NotificationCountResponse(unread_count=repo.count_unread(principal.id))


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark a notification as read",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        404: {"description": "Notification not found"},
    },
)
async def mark_as_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> NotificationResponse:
    """Mark a single notification as read."""
    repo = NotificationRepository(db)
    notification = repo.get_for_recipient(notification_id, principal.id)
    if notification is None:
        raise NotFoundError(f"Notification {notification_id} not found")
    return NotificationResponse.model_validate(repo.mark_as_read(notification))


@router.post(
    "/read_all",
    response_model=NotificationMarkAllResponse,
    summary="Mark all notifications as read",
    responses={401: {"description": "Unauthorized – invalid or missing access token"}},
)
async def mark_all_as_read(
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> NotificationMarkAllResponse:
    repo = NotificationRepository(db)
    return NotificationMarkAllResponse(marked_count=repo.mark_all_as_read(principal.id))
