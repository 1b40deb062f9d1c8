"""Audit service for recording mutating actions against the marketplace."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from tourhub.models.audit_log import AuditLog
from tourhub.repositories.audit_log_repository import AuditLogRepository


@dataclass(frozen=True)
class RequestContext:
    """Where a mutating request came from, copied onto its audit entries."""

    ip_address: str | None = None
    user_agent: str | None = None
    request_method: str | None = None
    request_url: str | None = None

    def as_fields(self) -> dict[str, Any]:
        return {
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "request_method": self.request_method,
            "request_url": self.request_url,
        }


def diff_values(
    old_data: dict[str, Any] | None, new_data: dict[str, Any] | None
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Reduce two snapshots to the keys whose values differ."""
    old = old_data or {}
    new = new_data or {}
    changed = {key for key in set(old) | set(new) if old.get(key) != new.get(key)}
    return (
        {key: old.get(key) for key in sorted(changed)},
        {key: new.get(key) for key in sorted(changed)},
    )


class AuditService:
    """Service for recording audit trail entries."""

    def __init__(self, db: Session, context: RequestContext | None = None):
        self.repo = AuditLogRepository(db)
        self.context = context or RequestContext()

    def log_create(
        self,
        resource_type: str,
        resource_id: UUID,
        user_id: UUID | None = None,
        data: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Log a resource creation event."""
        return self.repo.create(
            action="created",
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            new_values=data or {},
            **self.context.as_fields(),
        )

    def log_update(
        self,
        resource_type: str,
        resource_id: UUID,
        user_id: UUID | None = None,
        old_data: dict[str, Any] | None = None,
        new_data: dict[str, Any] | None = None,
    ) -> AuditLog | None:
        """Log a resource update event, auto-diffing changed fields."""
        old_values, new_values = diff_values(old_data, new_data)
        if not new_values:
            return None
        return self.repo.create(
            action="updated",
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            old_values=old_values,
            new_values=new_values,
            **self.context.as_fields(),
        )

    def log_status_change(
        self,
        resource_type: str,
        resource_id: UUID,
        action: str,
        old_status: str | None,
        new_status: str | None,
        user_id: UUID | None = None,
        extra: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Log a lifecycle transition under the action that caused it."""
        new_values: dict[str, Any] = {"status": new_status}
        new_values.update(extra or {})
        return self.repo.create(
            action=action,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            old_values={"status": old_status},
            new_values=new_values,
            **self.context.as_fields(),
        )

    def log_request(
        self,
        *,
        user_id: UUID | None,
        status_code: int,
        error_message: str | None = None,
    ) -> AuditLog:
        """Log a mutating HTTP request that the API refused or failed."""
        method = (self.context.request_method or "request").lower()
        return self.repo.create(
            action=f"{method}_failed",
            user_id=user_id,
            status_code=status_code,
            error_message=error_message[:1000] if error_message else None,
            **self.context.as_fields(),
        )

    def query(
        self,
        skip: int = 0,
        limit: int = 100,
        user_id: UUID | None = None,
        resource_type: str | None = None,
        resource_id: UUID | None = None,
        action: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        order_by: str | None = None,
    ) -> list[AuditLog]:
        if resource_type is not None and resource_id is not None:
            return self.repo.get_by_resource(resource_type, resource_id, skip=skip, limit=limit)
        return self.repo.get_all(
            skip=skip,
            limit=limit,
            user_id=user_id,
            resource_type=resource_type,
            action=action,
            start_date=start_date,
            end_date=end_date,
            order_by=order_by,
        )
