"""Booking schemas - Pydantic models for the bookings API."""

from datetime import datetime
from uuid import UUID
from typing import Literal

from pydantic import BaseModel, Field


BookingStatusParam = Literal["pending", "confirmed", "cancelled", "completed", "no_show"]


class BookingWindow(BaseModel):
    """A candidate [start_time, end_time) window on a resource."""
    resource_id: UUID
    start_time: datetime
    end_time: datetime


class BookingCreate(BookingWindow):
    """Schema for creating a booking."""
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    user_id: str | None = Field(None, max_length=255)
    status: Literal["pending", "confirmed"] = "pending"
    current_participants: int = Field(0, ge=0)
    notes: str | None = None


class BookingCheck(BookingWindow):
    """Dry-run conflict check, optionally ignoring a booking being modified."""
    exclude_booking_id: UUID | None = None


class BookingReschedule(BaseModel):
    """Schema for moving a booking to a new window."""
    start_time: datetime
    end_time: datetime


class BookingRead(BaseModel):
    """Schema for reading a booking."""
    id: UUID
    organization_id: UUID
    resource_id: UUID
    user_id: str | None
    title: str
    description: str | None
    start_time: datetime
    end_time: datetime
    status: str
    current_participants: int
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingParticipantsUpdate(BaseModel):
    """Schema for setting a booking's participant count."""
    current_participants: int = Field(..., ge=0)
