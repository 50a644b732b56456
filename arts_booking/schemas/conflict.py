"""Conflict schemas - findings, conflict log payloads and admin views."""

from datetime import datetime
from uuid import UUID
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from arts_booking.schemas.booking import BookingRead


ConflictTypeParam = Literal[
    "double_booking", "timezone_mismatch", "resource_unavailable", "capacity_exceeded"
]
ConflictSeverityParam = Literal["low", "medium", "high", "critical"]
ConflictStatusParam = Literal["open", "investigating", "resolved", "ignored"]


# =============================================================================
# Conflict Log Payloads (one shape per conflict_type)
# =============================================================================

class _PayloadBase(BaseModel):
    start_time: datetime
    end_time: datetime


class DoubleBookingData(_PayloadBase):
    conflict_type: Literal["double_booking"] = "double_booking"
    conflicting_booking_ids: list[UUID] = Field(default_factory=list)


class ResourceUnavailableData(_PayloadBase):
    conflict_type: Literal["resource_unavailable"] = "resource_unavailable"
    reason: Literal["not_found", "inactive", "not_bookable"]


class CapacityExceededData(_PayloadBase):
    conflict_type: Literal["capacity_exceeded"] = "capacity_exceeded"
    current_participants: int = Field(..., ge=0)
    capacity: int = Field(..., ge=0)


class TimezoneMismatchData(_PayloadBase):
    conflict_type: Literal["timezone_mismatch"] = "timezone_mismatch"
    booking_timezone: str
    resource_timezone: str


ConflictPayload = Annotated[
    Union[DoubleBookingData, ResourceUnavailableData, CapacityExceededData, TimezoneMismatchData],
    Field(discriminator="conflict_type"),
]

conflict_payload_adapter = TypeAdapter(ConflictPayload)


# =============================================================================
# Detector Findings
# =============================================================================

class BookingConflictRead(BaseModel):
    """A single finding from a booking conflict check."""
    type: ConflictTypeParam
    severity: ConflictSeverityParam
    message: str
    conflicting_bookings: list[BookingRead] | None = None
    suggested_resolutions: list[str] | None = None


class ConflictCheckResponse(BaseModel):
    has_conflicts: bool
    conflicts: list[BookingConflictRead]


class BookingConflictResponse(BaseModel):
    """Body of a 409 response when a booking is rejected."""
    error: str = "Booking conflicts detected"
    message: str = "Please resolve conflicts before creating the booking"
    conflicts: list[BookingConflictRead]


# =============================================================================
# Conflict Logs
# =============================================================================

class ConflictLogCreate(BaseModel):
    """Schema for manually recording a conflict."""
    resource_id: UUID | None = None
    conflict_type: ConflictTypeParam
    conflict_data: dict
    severity: ConflictSeverityParam = "medium"


class ConflictResolve(BaseModel):
    resolution: str = Field(..., min_length=1)
    resolved_by: str = Field(..., min_length=1, max_length=255)
    resolution_notes: str | None = None


class ConflictIgnore(BaseModel):
    resolved_by: str = Field(..., min_length=1, max_length=255)
    resolution_notes: str | None = None


class ResourceSummary(BaseModel):
    """Minimal resource identity shown next to a conflict."""
    id: UUID
    title: str
    type: str

    model_config = {"from_attributes": True}


class ConflictLogRead(BaseModel):
    """Schema for reading a conflict log."""
    id: UUID
    organization_id: UUID
    resource_id: UUID | None
    conflict_type: str
    conflict_data: dict
    severity: str
    status: str
    resolution: str | None
    resolved_at: datetime | None
    resolved_by: str | None
    resolution_notes: str | None
    created_at: datetime
    updated_at: datetime
    resource: ResourceSummary | None = None

    model_config = {"from_attributes": True}


class ConflictStatsRead(BaseModel):
    total: int
    open: int
    resolved: int
    by_type: dict[str, int]
    by_severity: dict[str, int]
