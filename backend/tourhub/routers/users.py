"""User administration endpoints: guide suspension, roles and account status."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from tourhub.core.auth import get_current_principal
from tourhub.core.database import get_db
from tourhub.core.errors import NotFoundError, PermissionDeniedError
from tourhub.core.permissions import AuthenticatedPrincipal, default_resolver
from tourhub.models.moderation_log import ContentType
from tourhub.models.user import GuideStatus, User, UserRole
from tourhub.repositories.user_repository import UserRepository
from tourhub.schemas.moderation_log import TransitionRequest
from tourhub.schemas.user import (
    AccountActionRequest,
    RoleChangeRequest,
    UserResponse,
    UserTransitionResponse,
)
from tourhub.services.event_dispatcher import EventDispatcher, get_event_dispatcher
from tourhub.services.workflow_service import WorkflowService

router = APIRouter()

TRANSITION_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"description": "Action not allowed for this user or targets the caller"},
    401: {"description": "Unauthorized – invalid or missing access token"},
    403: {"description": "Insufficient permissions"},
    404: {"description": "User not found"},
    409: {"description": "Active bookings exist or concurrent modification"},
}


def _transition(
    user_id: UUID,
    action: str,
    payload: dict[str, Any],
    db: Session,
    principal: AuthenticatedPrincipal,
    dispatcher: EventDispatcher,
) -> UserTransitionResponse:
    result = WorkflowService(db, dispatcher=dispatcher).request_transition(
        principal, ContentType.USER, user_id, action, payload
    )
    return UserTransitionResponse(
        user=UserResponse.model_validate(result.entity),
        moderation_log_id=result.moderation_log_id,
        previous_status=result.previous_status,
        new_status=result.new_status,
    )


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get the current user",
    responses={401: {"description": "Unauthorized – invalid or missing access token"}},
)
async def get_me(
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> User:
    user = UserRepository(db).get_by_id(principal.id)
    if user is None:
        raise NotFoundError(f"User {principal.id} not found")
    return user


@router.get(
    "/",
    response_model=list[UserResponse],
    summary="List users",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        403: {"description": "Insufficient permissions"},
    },
)
async def list_users(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    role: UserRole | None = None,
    guide_status: GuideStatus | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> list[User]:
    if not default_resolver.check(principal, "view_users"):
        raise PermissionDeniedError()
    repo = UserRepository(db)
    role_filter = role.value if role else None
    status_filter = guide_status.value if guide_status else None
    response.headers["X-Total-Count"] = str(repo.count(role=role_filter, guide_status=status_filter))
    return repo.get_all(skip=skip, limit=limit, role=role_filter, guide_status=status_filter)


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    summary="Get user",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "User not found"},
    },
)
async def get_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> User:
    if user_id != principal.id and not default_resolver.check(principal, "view_users"):
        raise PermissionDeniedError()
    user = UserRepository(db).get_by_id(user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


@router.post(
    "/{user_id}/suspend",
    response_model=UserTransitionResponse,
    summary="Suspend a verified guide",
    responses=TRANSITION_RESPONSES,
)
async def suspend_guide(
    user_id: UUID,
    data: TransitionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> UserTransitionResponse:
    payload = data.model_dump() if data else {}
    return _transition(user_id, "suspend", payload, db, principal, dispatcher)


@router.post(
    "/{user_id}/reinstate",
    response_model=UserTransitionResponse,
    summary="Reinstate a suspended guide",
    responses=TRANSITION_RESPONSES,
)
async def reinstate_guide(
    user_id: UUID,
    data: TransitionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> UserTransitionResponse:
    payload = data.model_dump() if data else {}
    return _transition(user_id, "reinstate", payload, db, principal, dispatcher)


@router.post(
    "/{user_id}/role",
    response_model=UserTransitionResponse,
    summary="Change a user's role",
    responses=TRANSITION_RESPONSES,
)
async def change_role(
    user_id: UUID,
    data: RoleChangeRequest,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> UserTransitionResponse:
    """Admin only. Administrators cannot change their own role."""
    return _transition(user_id, "change_role", data.model_dump(mode="json"), db, principal, dispatcher)


@router.post(
    "/{user_id}/deactivate",
    response_model=UserTransitionResponse,
    summary="Deactivate an account",
    responses=TRANSITION_RESPONSES,
)
async def deactivate_user(
    user_id: UUID,
    data: AccountActionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> UserTransitionResponse:
    """Deactivate an account. Fails while the user has open bookings unless ``cascade`` is set."""
    payload = data.model_dump() if data else {}
    return _transition(user_id, "deactivate", payload, db, principal, dispatcher)


@router.post(
    "/{user_id}/reactivate",
    response_model=UserTransitionResponse,
    summary="Reactivate an account",
    responses=TRANSITION_RESPONSES,
)
async def reactivate_user(
    user_id: UUID,
    data: AccountActionRequest | None = None,
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> UserTransitionResponse:
    payload = data.model_dump() if data else {}
    return _transition(user_id, "reactivate", payload, db, principal, dispatcher)
