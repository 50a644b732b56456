"""Bookings router - create, check and manage bookings for an organization.

Booking writes run the conflict checks first. A non-empty result is
returned as 409 with the findings; a failed check is a 500, never a pass.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from arts_booking.core.config import settings
from arts_booking.core.deps import get_db, get_organization
from arts_booking.core.rate_limit import limiter
from arts_booking.db.enums import BookingStatus
from arts_booking.db.models import Organization
from arts_booking.schemas.booking import (
    BookingCheck,
    BookingCreate,
    BookingParticipantsUpdate,
    BookingRead,
    BookingReschedule,
    BookingStatusParam,
)
from arts_booking.schemas.conflict import (
    BookingConflictRead,
    BookingConflictResponse,
    ConflictCheckResponse,
)
from arts_booking.services import booking_service, conflict_service
from arts_booking.services.conflict_service import BookingConflict

router = APIRouter(prefix="/organizations/{org_id}/bookings", tags=["bookings"])


# =============================================================================
# Helper Functions
# =============================================================================

def _conflict_to_read(conflict: BookingConflict) -> BookingConflictRead:
    """Convert a detector finding to its API shape."""
    bookings = None
    if conflict.conflicting_bookings is not None:
        bookings = [BookingRead.model_validate(b) for b in conflict.conflicting_bookings]
    return BookingConflictRead(
        type=conflict.type.value,
        severity=conflict.severity.value,
        message=conflict.message,
        conflicting_bookings=bookings,
        suggested_resolutions=conflict.suggested_resolutions,
    )


def _conflict_response(conflicts: list[BookingConflict]) -> JSONResponse:
    body = BookingConflictResponse(conflicts=[_conflict_to_read(c) for c in conflicts])
    return JSONResponse(status_code=409, content=body.model_dump(mode="json"))


def _store_failure() -> HTTPException:
    return HTTPException(status_code=500, detail="Failed to check availability")


# =============================================================================
# Bookings
# =============================================================================

@router.get("", response_model=list[BookingRead])
def list_bookings(
    resource_id: UUID | None = Query(None),
    status: BookingStatusParam | None = Query(None, description="Filter by status"),
    start: datetime | None = Query(None, description="Bookings starting at or after"),
    end: datetime | None = Query(None, description="Bookings ending at or before"),
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    """List bookings for the organization, earliest first."""
    return booking_service.list_bookings(
        db,
        org.id,
        resource_id=resource_id,
        status=BookingStatus(status) if status else None,
        start=start,
        end=end,
    )


@router.post("", status_code=201, response_model=BookingRead)
@limiter.limit(settings.booking_rate_limit)
def create_booking(
    request: Request,
    data: BookingCreate,
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    """
    Create a booking.

    Returns 409 with the conflict findings when the window is not free.
    """
    try:
        return booking_service.create_booking(
            db,
            org.id,
            data.resource_id,
            title=data.title,
            start_time=data.start_time,
            end_time=data.end_time,
            description=data.description,
            user_id=data.user_id,
            status=BookingStatus(data.status),
            current_participants=data.current_participants,
            notes=data.notes,
        )
    except booking_service.InvalidBookingWindowError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except booking_service.BookingConflictError as exc:
        return _conflict_response(exc.conflicts)
    except conflict_service.ConflictStoreError:
        raise _store_failure()


@router.post("/check", response_model=ConflictCheckResponse)
def check_booking(
    data: BookingCheck,
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    """Run the conflict checks for a window without booking it."""
    try:
        conflicts = conflict_service.check_booking_conflicts(
            db,
            org.id,
            data.resource_id,
            data.start_time,
            data.end_time,
            exclude_booking_id=data.exclude_booking_id,
        )
    except conflict_service.ConflictStoreError:
        raise _store_failure()
    return ConflictCheckResponse(
        has_conflicts=bool(conflicts),
        conflicts=[_conflict_to_read(c) for c in conflicts],
    )


@router.get("/{booking_id}", response_model=BookingRead)
def get_booking(
    booking_id: UUID,
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    booking = booking_service.get_booking(db, org.id, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@router.post("/{booking_id}/reschedule", response_model=BookingRead)
@limiter.limit(settings.booking_rate_limit)
def reschedule_booking(
    request: Request,
    booking_id: UUID,
    data: BookingReschedule,
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    """Move a booking to a new window; its current slot is ignored in the check."""
    try:
        return booking_service.reschedule_booking(
            db, org.id, booking_id, data.start_time, data.end_time
        )
    except booking_service.BookingNotFoundError:
        raise HTTPException(status_code=404, detail="Booking not found")
    except (
        booking_service.InvalidBookingWindowError,
        booking_service.InvalidStatusTransitionError,
    ) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except booking_service.BookingConflictError as exc:
        return _conflict_response(exc.conflicts)
    except conflict_service.ConflictStoreError:
        raise _store_failure()


def _status_change(action, db: Session, org_id: UUID, booking_id: UUID):
    try:
        return action(db, org_id, booking_id)
    except booking_service.BookingNotFoundError:
        raise HTTPException(status_code=404, detail="Booking not found")
    except booking_service.InvalidStatusTransitionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/{booking_id}/confirm", response_model=BookingRead)
def confirm_booking(
    booking_id: UUID,
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    """Confirm a pending booking."""
    return _status_change(booking_service.confirm_booking, db, org.id, booking_id)


@router.post("/{booking_id}/cancel", response_model=BookingRead)
def cancel_booking(
    booking_id: UUID,
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    """Cancel a booking and free its slot."""
    return _status_change(booking_service.cancel_booking, db, org.id, booking_id)


@router.patch("/{booking_id}/participants", response_model=BookingRead)
def update_participants(
    booking_id: UUID,
    data: BookingParticipantsUpdate,
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    try:
        return booking_service.update_participants(
            db, org.id, booking_id, data.current_participants
        )
    except booking_service.BookingNotFoundError:
        raise HTTPException(status_code=404, detail="Booking not found")
