from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from tourhub.models.destination import DestinationStatus


class DestinationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1, max_length=255)
    region: str | None = Field(default=None, max_length=100)

    model_config = {"extra": "forbid"}


class DestinationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1)
    location: str | None = Field(default=None, min_length=1, max_length=255)
    region: str | None = Field(default=None, max_length=100)

    model_config = {"extra": "forbid"}


class DestinationResponse(BaseModel):
    id: UUID
    name: str
    description: str
    location: str
    region: str | None
    created_by: UUID
    status: DestinationStatus
    approved_by: UUID | None
    approved_at: datetime | None
    rejection_reason: str | None
    featured: bool
    view_count: int
    submitted_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DestinationTransitionResponse(BaseModel):
    destination: DestinationResponse
    moderation_log_id: UUID | None
    previous_status: str | None
    new_status: str | None


class DestinationDeleteResponse(BaseModel):
    id: UUID
    deleted: bool = True
    moderation_log_id: UUID
    cancelled_bookings: list[UUID] = []
