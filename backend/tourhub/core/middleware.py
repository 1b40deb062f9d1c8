"""Middleware recording refused or failed mutating requests in the audit trail.

Successful mutations are audited by the workflow itself, with the
before/after values it knows about. This only covers requests that never
got that far.
"""

import logging
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from tourhub.core import database
from tourhub.core.auth import principal_id_from_request
from tourhub.services.audit_service import AuditService, RequestContext

logger = logging.getLogger(__name__)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class FailedRequestAuditMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response = await call_next(request)
        if request.method in MUTATING_METHODS and response.status_code >= 400:
            self._record(request, response.status_code)
        return response

    @staticmethod
    def _record(request: Request, status_code: int) -> None:
        error = getattr(request.state, "error", None) or {}
        context = RequestContext(
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            request_method=request.method,
            request_url=str(request.url),
        )
        db = database.SessionLocal()
        try:
            AuditService(db, context).log_request(
                user_id=principal_id_from_request(request),
                status_code=status_code,
                error_message=error.get("error"),
            )
        except Exception:
            db.rollback()
            logger.exception("Failed to audit %s %s", request.method, request.url.path)
        finally:
            db.close()
