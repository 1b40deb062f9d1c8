from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from tourhub.models.guide_verification import VerificationStatus
from tourhub.schemas.user import UserResponse


class GuideApplicationCreate(BaseModel):
    # An empty list is accepted here and rejected as INVALID_DATA.
    verification_documents: list[str] = Field(default_factory=list, max_length=20)
    credentials: dict[str, Any] | None = None

    model_config = {"extra": "forbid"}


class GuideVerificationResponse(BaseModel):
    id: UUID
    user_id: UUID
    credentials: dict[str, Any] | None
    documents: list[str]
    status: VerificationStatus
    reviewed_by: UUID | None
    reviewed_at: datetime | None
    notes: str | None
    submitted_at: datetime

    model_config = {"from_attributes": True}


class GuideVerificationTransitionResponse(BaseModel):
    verification: GuideVerificationResponse
    user: UserResponse
    moderation_log_id: UUID | None
    previous_status: str | None
    new_status: str | None
