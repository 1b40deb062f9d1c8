"""Guide application and verification endpoints."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from tourhub.core.auth import get_current_principal
from tourhub.core.database import get_db
from tourhub.core.errors import NotFoundError, PermissionDeniedError
from tourhub.core.permissions import AuthenticatedPrincipal, default_resolver
from tourhub.models.guide_verification import GuideVerification, VerificationStatus
from tourhub.models.moderation_log import ContentType
from tourhub.repositories.guide_verification_repository import GuideVerificationRepository
from tourhub.schemas.guide_verification import (
    GuideApplicationCreate,
    GuideVerificationResponse,
    GuideVerificationTransitionResponse,
)
from tourhub.schemas.moderation_log import RejectionRequest, TransitionRequest
from tourhub.schemas.user import UserResponse
from tourhub.services.event_dispatcher import EventDispatcher, get_event_dispatcher
from tourhub.services.workflow_service import TransitionResult, WorkflowService

router = APIRouter()

REVIEW_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"description": "Verification already reviewed or self-review attempted"},
    401: {"description": "Unauthorized – invalid or missing access token"},
    403: {"description": "Insufficient permissions"},
    404: {"description": "Guide verification not found"},
    409: {"description": "Concurrent modification"},
}


def _transition_response(result: TransitionResult) -> GuideVerificationTransitionResponse:
    return GuideVerificationTransitionResponse(
        verification=GuideVerificationResponse.model_validate(result.entity),
        user=UserResponse.model_validate(result.related["user"]),
        moderation_log_id=result.moderation_log_id,
        previous_status=result.previous_status,
        new_status=result.new_status,
    )


@router.post(
    "/apply",
    response_model=GuideVerificationTransitionResponse,
    status_code=201,
    summary="Apply to become a guide",
    responses={
        400: {"description": "No verification documents supplied"},
        401: {"description": "Unauthorized – invalid or missing access token"},
        403: {"description": "Staff accounts cannot apply"},
        409: {"description": "Application already pending or user already verified"},
    },
)
async def apply_as_guide(
    data: GuideApplicationCreate,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> GuideVerificationTransitionResponse:
    result = WorkflowService(db, dispatcher=dispatcher).apply_as_guide(principal, data)
    return _transition_response(result)


@router.get(
    "/verifications",
    response_model=list[GuideVerificationResponse],
    summary="List guide verifications",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        403: {"description": "Insufficient permissions"},
    },
)
async def list_verifications(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    status: VerificationStatus | None = None,
    mine: bool = False,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> list[GuideVerification]:
    """Staff see every application; ``mine=true`` returns the caller's own."""
    if not mine and not default_resolver.check(principal, "view_pending_guides"):
        raise PermissionDeniedError()
    repo = GuideVerificationRepository(db)
    status_filter = status.value if status else None
    user_id = principal.id if mine else None
    verifications = repo.get_all(skip=skip, limit=limit, status=status_filter, user_id=user_id)
    if user_id is None:
        response.headers["X-Total-Count"] = str(repo.count(status=status_filter))
    return verifications


@router.get(
    "/verifications/{verification_id}",
    response_model=GuideVerificationResponse,
    summary="Get guide verification",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        404: {"description": "Guide verification not found"},
    },
)
async def get_verification(
    verification_id: UUID,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> GuideVerification:
    verification = GuideVerificationRepository(db).get_by_id(verification_id)
    if verification is None or (
        verification.user_id != principal.id
        and not default_resolver.check(principal, "view_pending_guides")
    ):
        raise NotFoundError(f"Guide verification {verification_id} not found")
    return verification


@router.post(
    "/verifications/{verification_id}/approve",
    response_model=GuideVerificationTransitionResponse,
    summary="Approve a guide application",
    responses=REVIEW_RESPONSES,
)
async def approve_verification(
    verification_id: UUID,
    data: TransitionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> GuideVerificationTransitionResponse:
    """Approve an application. The applicant becomes a verified guide."""
    result = WorkflowService(db, dispatcher=dispatcher).request_transition(
        principal,
        ContentType.GUIDE_VERIFICATION,
        verification_id,
        "approve",
        data.model_dump() if data else {},
    )
    return _transition_response(result)


@router.post(
    "/verifications/{verification_id}/reject",
    response_model=GuideVerificationTransitionResponse,
    summary="Reject a guide application",
    responses=REVIEW_RESPONSES,
)
async def reject_verification(
    verification_id: UUID,
    data: RejectionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> GuideVerificationTransitionResponse:
    """Reject an application. ``reason`` is required."""
    result = WorkflowService(db, dispatcher=dispatcher).request_transition(
        principal,
        ContentType.GUIDE_VERIFICATION,
        verification_id,
        "reject",
        data.model_dump() if data else {},
    )
    return _transition_response(result)
