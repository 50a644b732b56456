"""Booking service - creation, rescheduling and status changes guarded by conflict checks."""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from arts_booking.core.config import settings
from arts_booking.core.structured_logging import build_log_context
from arts_booking.db.enums import BookingStatus, ConflictSeverity, ConflictType
from arts_booking.db.models import Booking, Resource
from arts_booking.services import conflict_service
from arts_booking.services.conflict_service import (
    DOUBLE_BOOKING_RESOLUTIONS,
    BookingConflict,
    normalize_utc,
)

logger = logging.getLogger(__name__)


class BookingServiceError(Exception):
    """Base exception for booking service errors."""

    pass


class BookingNotFoundError(BookingServiceError):
    """Booking not found."""

    pass


class InvalidBookingWindowError(BookingServiceError, ValueError):
    """start_time is not before end_time."""

    pass


class InvalidStatusTransitionError(BookingServiceError):
    """Booking cannot move to the requested status."""

    pass


class BookingConflictError(BookingServiceError):
    """The requested window conflicts; carries the findings."""

    def __init__(self, conflicts: list[BookingConflict]):
        self.conflicts = conflicts
        super().__init__(f"{len(conflicts)} booking conflict(s) detected")


# Allowed status transitions (from -> to)
STATUS_TRANSITIONS: dict[str, set[str]] = {
    BookingStatus.PENDING.value: {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value},
    BookingStatus.CONFIRMED.value: {
        BookingStatus.CANCELLED.value,
        BookingStatus.COMPLETED.value,
        BookingStatus.NO_SHOW.value,
    },
}


def _validate_window(start_time: datetime, end_time: datetime) -> tuple[datetime, datetime]:
    start_time = normalize_utc(start_time)
    end_time = normalize_utc(end_time)
    if start_time >= end_time:
        raise InvalidBookingWindowError("start_time must be before end_time")
    return start_time, end_time


def _lock_resource(db: Session, org_id: UUID, resource_id: UUID) -> None:
    """
    Row-lock the resource so check and insert for it run one at a time.

    FOR UPDATE is dropped on SQLite, which serializes writers on its own.
    """
    db.query(Resource.id).filter(
        Resource.id == resource_id,
        Resource.organization_id == org_id,
    ).with_for_update().first()


# Name of the PostgreSQL EXCLUDE constraint over active booking windows
OVERLAP_CONSTRAINT = "excl_bookings_active_window"


def _is_overlap_violation(error: IntegrityError) -> bool:
    constraint_name = getattr(getattr(error.orig, "diag", None), "constraint_name", None)
    if constraint_name == OVERLAP_CONSTRAINT:
        return True
    message = str(error.orig) if error.orig else str(error)
    return OVERLAP_CONSTRAINT in message


def _exclusion_violation() -> BookingConflict:
    """Finding for an insert rejected by the store's overlap constraint."""
    return BookingConflict(
        type=ConflictType.DOUBLE_BOOKING,
        severity=ConflictSeverity.HIGH,
        message="Resource is already booked during this time period",
        conflicting_bookings=[],
        suggested_resolutions=list(DOUBLE_BOOKING_RESOLUTIONS),
    )


def _guard_window(
    db: Session,
    org_id: UUID,
    resource_id: UUID,
    start_time: datetime,
    end_time: datetime,
    exclude_booking_id: UUID | None,
    log_conflicts: bool,
) -> None:
    _lock_resource(db, org_id, resource_id)
    conflicts = conflict_service.check_booking_conflicts(
        db, org_id, resource_id, start_time, end_time, exclude_booking_id
    )
    if not conflicts:
        return

    # Release the row lock before recording the audit trail
    db.rollback()
    if log_conflicts:
        conflict_service.log_booking_conflicts(
            db, org_id, resource_id, start_time, end_time, conflicts
        )
    raise BookingConflictError(conflicts)


def _commit_window(db: Session, booking: Booking) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not _is_overlap_violation(exc):
            raise
        logger.warning(
            "Booking write rejected by %s",
            OVERLAP_CONSTRAINT,
            extra=build_log_context(org_id=booking.organization_id, resource_id=booking.resource_id),
        )
        raise BookingConflictError([_exclusion_violation()]) from exc
    db.refresh(booking)


# =============================================================================
# Queries
# =============================================================================

def get_booking(db: Session, org_id: UUID, booking_id: UUID) -> Booking | None:
    """Get a booking scoped to org."""
    return db.query(Booking).filter(
        Booking.id == booking_id,
        Booking.organization_id == org_id,
    ).first()


def _require_booking(db: Session, org_id: UUID, booking_id: UUID) -> Booking:
    booking = get_booking(db, org_id, booking_id)
    if not booking:
        raise BookingNotFoundError(f"Booking {booking_id} not found")
    return booking


def list_bookings(
    db: Session,
    org_id: UUID,
    resource_id: UUID | None = None,
    status: BookingStatus | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Booking]:
    """List bookings for an org, earliest first. start/end bound the booking window."""
    query = db.query(Booking).filter(Booking.organization_id == org_id)
    if resource_id:
        query = query.filter(Booking.resource_id == resource_id)
    if status:
        query = query.filter(Booking.status == BookingStatus(status).value)
    if start:
        query = query.filter(Booking.start_time >= normalize_utc(start))
    if end:
        query = query.filter(Booking.end_time <= normalize_utc(end))
    return query.order_by(Booking.start_time.asc()).all()


# =============================================================================
# Writes
# =============================================================================

def create_booking(
    db: Session,
    org_id: UUID,
    resource_id: UUID,
    title: str,
    start_time: datetime,
    end_time: datetime,
    description: str | None = None,
    user_id: str | None = None,
    status: BookingStatus = BookingStatus.PENDING,
    current_participants: int = 0,
    notes: str | None = None,
    log_conflicts: bool | None = None,
) -> Booking:
    """
    Create a booking after checking the window for conflicts.

    Raises:
        InvalidBookingWindowError: start_time >= end_time
        BookingConflictError: the window conflicts (findings logged first
            unless log_conflicts is False)
        ConflictStoreError: the conflict check could not be completed
    """
    status = BookingStatus(status)
    if status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
        raise InvalidStatusTransitionError(f"New bookings cannot start as {status.value}")
    start_time, end_time = _validate_window(start_time, end_time)
    if log_conflicts is None:
        log_conflicts = settings.LOG_CONFLICTS_ON_REJECT

    _guard_window(db, org_id, resource_id, start_time, end_time, None, log_conflicts)

    booking = Booking(
        organization_id=org_id,
        resource_id=resource_id,
        title=title,
        description=description,
        user_id=user_id,
        start_time=start_time,
        end_time=end_time,
        status=status.value,
        current_participants=current_participants,
        notes=notes,
    )
    db.add(booking)
    _commit_window(db, booking)

    logger.info(
        "Created booking",
        extra=build_log_context(org_id=org_id, resource_id=resource_id, booking_id=booking.id),
    )
    return booking


def reschedule_booking(
    db: Session,
    org_id: UUID,
    booking_id: UUID,
    start_time: datetime,
    end_time: datetime,
    log_conflicts: bool | None = None,
) -> Booking:
    """Move an active booking to a new window, ignoring its own current slot."""
    start_time, end_time = _validate_window(start_time, end_time)
    booking = _require_booking(db, org_id, booking_id)
    if not booking.occupies_slot:
        raise InvalidStatusTransitionError(f"Cannot reschedule a {booking.status} booking")
    if log_conflicts is None:
        log_conflicts = settings.LOG_CONFLICTS_ON_REJECT

    _guard_window(
        db, org_id, booking.resource_id, start_time, end_time, booking.id, log_conflicts
    )

    booking.start_time = start_time
    booking.end_time = end_time
    _commit_window(db, booking)

    logger.info(
        "Rescheduled booking",
        extra=build_log_context(org_id=org_id, resource_id=booking.resource_id, booking_id=booking.id),
    )
    return booking


def _change_status(db: Session, org_id: UUID, booking_id: UUID, to_status: BookingStatus) -> Booking:
    booking = _require_booking(db, org_id, booking_id)
    if to_status.value not in STATUS_TRANSITIONS.get(booking.status, set()):
        raise InvalidStatusTransitionError(
            f"Cannot move booking from {booking.status} to {to_status.value}"
        )
    booking.status = to_status.value
    db.commit()
    db.refresh(booking)
    logger.info(
        "Booking moved to %s",
        to_status.value,
        extra=build_log_context(org_id=org_id, booking_id=booking_id),
    )
    return booking


def confirm_booking(db: Session, org_id: UUID, booking_id: UUID) -> Booking:
    """Confirm a pending booking. The slot is already held, so no re-check."""
    return _change_status(db, org_id, booking_id, BookingStatus.CONFIRMED)


def cancel_booking(db: Session, org_id: UUID, booking_id: UUID) -> Booking:
    """Cancel a pending or confirmed booking, freeing its slot."""
    return _change_status(db, org_id, booking_id, BookingStatus.CANCELLED)


def update_participants(db: Session, org_id: UUID, booking_id: UUID, count: int) -> Booking:
    """Set the participant count of a booking."""
    if count < 0:
        raise ValueError("Participant count cannot be negative")
    booking = _require_booking(db, org_id, booking_id)
    booking.current_participants = count
    db.commit()
    db.refresh(booking)
    return booking
