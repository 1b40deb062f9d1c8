"""Workflow error taxonomy.

Every failure the workflow can report carries a stable machine-readable
``code``. Clients key behaviour off the code, never off the message text.
The FastAPI handlers registered by :func:`register_exception_handlers`
render every error as ``{"error": <message>, "code": <code>}``.
"""

from __future__ import annotations

import logging
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INVALID_DATA = "INVALID_DATA"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_ACTION = "INVALID_ACTION"
    INVALID_STATUS = "INVALID_STATUS"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    UNAUTHORIZED = "UNAUTHORIZED"
    ALREADY_SUBMITTED = "ALREADY_SUBMITTED"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    APPLICATION_PENDING = "APPLICATION_PENDING"
    ALREADY_VERIFIED_GUIDE = "ALREADY_VERIFIED_GUIDE"
    ACTIVE_BOOKINGS_EXIST = "ACTIVE_BOOKINGS_EXIST"
    DESTINATION_NOT_AVAILABLE = "DESTINATION_NOT_AVAILABLE"
    DUPLICATE_BOOKING = "DUPLICATE_BOOKING"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.NOT_FOUND: "Resource not found",
    ErrorCode.INVALID_DATA: "Invalid request data",
    ErrorCode.VALIDATION_ERROR: "Request validation failed",
    ErrorCode.INVALID_ACTION: "You cannot perform this action on your own resource",
    ErrorCode.INVALID_STATUS: "Action is not allowed in the current status",
    ErrorCode.INSUFFICIENT_PERMISSIONS: "Insufficient permissions",
    ErrorCode.UNAUTHORIZED: "Unauthorized",
    ErrorCode.ALREADY_SUBMITTED: "Content already submitted for moderation",
    ErrorCode.ALREADY_PROCESSED: "Request already processed",
    ErrorCode.APPLICATION_PENDING: "Guide application already pending",
    ErrorCode.ALREADY_VERIFIED_GUIDE: "User is already a verified guide",
    ErrorCode.ACTIVE_BOOKINGS_EXIST: "Active bookings reference this resource",
    ErrorCode.DESTINATION_NOT_AVAILABLE: "Destination is not approved for booking",
    ErrorCode.DUPLICATE_BOOKING: (
        "You already have a pending or confirmed booking for this destination"
    ),
    ErrorCode.CONFLICT: "Concurrent modification detected, please retry",
    ErrorCode.INTERNAL_ERROR: "Internal server error",
}


class WorkflowError(Exception):
    """Base class for every error the workflow surfaces to callers."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str | None = None, *, code: ErrorCode | None = None):
        if code is not None:
            self.code = code
        self.message = message or ERROR_MESSAGES[self.code]
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "code": self.code.value}


class NotFoundError(WorkflowError):
    code = ErrorCode.NOT_FOUND
    status_code = 404


class InvalidDataError(WorkflowError):
    code = ErrorCode.INVALID_DATA
    status_code = 400


class InvalidActionError(WorkflowError):
    """Raised by the self-action guard. Never retryable with the same actor."""

    code = ErrorCode.INVALID_ACTION
    status_code = 400


class InvalidStatusError(WorkflowError):
    code = ErrorCode.INVALID_STATUS
    status_code = 400


class AlreadyProcessedError(InvalidStatusError):
    code = ErrorCode.ALREADY_PROCESSED


class PermissionDeniedError(WorkflowError):
    code = ErrorCode.INSUFFICIENT_PERMISSIONS
    status_code = 403


class UnauthorizedError(WorkflowError):
    """The actor is not a participant of the resource (or not authenticated)."""

    code = ErrorCode.UNAUTHORIZED
    status_code = 403


class AuthenticationError(UnauthorizedError):
    status_code = 401


class DuplicateError(WorkflowError):
    """Idempotency guards: a request that would repeat an open operation."""

    code = ErrorCode.ALREADY_SUBMITTED
    status_code = 409


class DependentRecordsError(WorkflowError):
    code = ErrorCode.ACTIVE_BOOKINGS_EXIST
    status_code = 409


class ConflictError(WorkflowError):
    code = ErrorCode.CONFLICT
    status_code = 409
    retryable = True


class InternalError(WorkflowError):
    code = ErrorCode.INTERNAL_ERROR
    status_code = 500


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    request.state.error = exc.to_dict()
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", ERROR_MESSAGES[ErrorCode.VALIDATION_ERROR])
    if location:
        message = f"{location}: {message}"
    request.state.error = {"error": message, "code": ErrorCode.VALIDATION_ERROR.value}
    return JSONResponse(
        status_code=422,
        content={"error": message, "code": ErrorCode.VALIDATION_ERROR.value},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WorkflowError, workflow_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError, request_validation_error_handler  # type: ignore[arg-type]
    )
