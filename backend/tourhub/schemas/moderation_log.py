"""Pydantic schemas for the moderation ledger and shared transition payloads."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from tourhub.models.moderation_log import ContentType


class TransitionRequest(BaseModel):
    """Body for transitions that only carry an optional moderator note."""

    notes: str | None = Field(default=None, max_length=2000)

    model_config = {"extra": "forbid"}


class RejectionRequest(BaseModel):
    # Optional here so that a missing reason is reported as INVALID_DATA.
    reason: str | None = Field(default=None, max_length=1000)
    notes: str | None = Field(default=None, max_length=2000)

    model_config = {"extra": "forbid"}


class ModerationLogResponse(BaseModel):
    id: UUID
    content_type: ContentType
    content_id: UUID
    action: str
    moderator_id: UUID | None
    submitted_by: UUID | None
    status: str | None
    previous_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    notes: str | None
    rejection_reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ModerationQueuePage(BaseModel):
    items: list[ModerationLogResponse]
    total: int
    page: int
    pages: int
    limit: int
