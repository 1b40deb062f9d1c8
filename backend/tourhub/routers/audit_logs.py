"""Audit log API endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tourhub.core.auth import get_current_principal
from tourhub.core.database import get_db
from tourhub.core.errors import PermissionDeniedError
from tourhub.core.permissions import AuthenticatedPrincipal, default_resolver
from tourhub.schemas.audit_log import AuditLogResponse
from tourhub.services.audit_service import AuditService

router = APIRouter()


def _require_audit_access(principal: AuthenticatedPrincipal) -> None:
    if not default_resolver.check(principal, "view_audit_logs"):
        raise PermissionDeniedError()


@router.get(
    "/",
    response_model=list[AuditLogResponse],
    summary="List audit logs",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        403: {"description": "Insufficient permissions"},
    },
)
async def list_audit_logs(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    user_id: UUID | None = None,
    resource_type: str | None = None,
    resource_id: UUID | None = None,
    action: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    order_by: str | None = Query(default=None),
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> list[AuditLogResponse]:
    """List audit logs with optional filters."""
    _require_audit_access(principal)
    logs = AuditService(db).query(
        skip=skip,
        limit=limit,
        user_id=user_id,
        resource_type=resource_type,
        resource_id=resource_id,
        action=action,
        start_date=start_date,
        end_date=end_date,
        order_by=order_by,
    )
    return [AuditLogResponse.model_validate(log) for log in logs]


@router.get(
    "/{resource_type}/{resource_id}",
    response_model=list[AuditLogResponse],
    summary="Get audit trail for a resource",
    responses={
        401: {"description": "Unauthorized – invalid or missing access token"},
        403: {"description": "Insufficient permissions"},
    },
)
async def get_resource_audit_trail(
    resource_type: str,
    resource_id: UUID,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> list[AuditLogResponse]:
    """Get the audit trail for a specific resource."""
    _require_audit_access(principal)
    logs = AuditService(db).query(
        skip=skip, limit=limit, resource_type=resource_type, resource_id=resource_id
    )
    return [AuditLogResponse.model_validate(log) for log in logs]
