"""Moderation queue and content history endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tourhub.core.auth import get_current_principal
from tourhub.core.database import get_db
from tourhub.core.permissions import AuthenticatedPrincipal
from tourhub.models.moderation_log import ContentType
from tourhub.schemas.moderation_log import ModerationLogResponse, ModerationQueuePage
from tourhub.services.workflow_service import WorkflowService

router = APIRouter()


@router.get(
    "/queue",
    response_model=ModerationQueuePage,
    summary="List the moderation queue",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        403: {"description": "Insufficient permissions"},
    },
)
async def list_moderation_queue(
    content_type: ContentType | None = None,
    status: str = Query(default="pending"),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> ModerationQueuePage:
    """Items whose latest ledger entry has the given status (default `pending`)."""
    result = WorkflowService(db).list_moderation_queue(
        principal, content_type=content_type, status=status, page=page, limit=limit
    )
    return ModerationQueuePage(
        items=[ModerationLogResponse.model_validate(e) for e in result.items],
        total=result.total,
        page=result.page,
        pages=result.pages,
        limit=result.limit,
    )


@router.get(
    "/{content_type}/{content_id}",
    response_model=list[ModerationLogResponse],
    summary="Get the moderation history of one item",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        403: {"description": "Insufficient permissions"},
    },
)
async def get_content_history(
    content_type: ContentType,
    content_id: UUID,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> list[ModerationLogResponse]:
    """Every ledger entry for the item, oldest first."""
    entries = WorkflowService(db).moderation_history(principal, content_type, content_id)
    return [ModerationLogResponse.model_validate(e) for e in entries]
