from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from tourhub.models.user import GuideStatus, UserRole


class UserResponse(BaseModel):
    id: UUID
    email: str
    name: str
    role: UserRole
    guide_status: GuideStatus
    is_active: bool
    verified_by: UUID | None
    verified_at: datetime | None
    rejection_reason: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RoleChangeRequest(BaseModel):
    role: UserRole
    notes: str | None = Field(default=None, max_length=2000)

    model_config = {"extra": "forbid"}


class AccountActionRequest(BaseModel):
    """Body for deactivate/reactivate.

    ``cascade`` cancels the user's pending/confirmed bookings instead of
    refusing the deactivation.
    """

    cascade: bool = False
    notes: str | None = Field(default=None, max_length=2000)

    model_config = {"extra": "forbid"}


class UserTransitionResponse(BaseModel):
    user: UserResponse
    moderation_log_id: UUID | None
    previous_status: str | None
    new_status: str | None
