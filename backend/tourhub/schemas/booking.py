from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from tourhub.models.booking import BookingStatus


class BookingCreate(BaseModel):
    destination_id: UUID
    booking_date: datetime
    notes: str | None = Field(default=None, max_length=2000)

    model_config = {"extra": "forbid"}


class BookingNotesUpdate(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)

    model_config = {"extra": "forbid"}


class BookingResponse(BaseModel):
    id: UUID
    user_id: UUID
    destination_id: UUID | None
    guide_id: UUID | None
    status: BookingStatus
    booking_date: datetime
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingTransitionResponse(BaseModel):
    booking: BookingResponse
    moderation_log_id: UUID | None
    previous_status: str | None
    new_status: str | None
