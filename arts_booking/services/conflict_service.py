"""
Booking conflict detection and conflict log lifecycle.

check_booking_conflicts runs three independent checks against the store
and returns every finding that fires, in a fixed order:

1. double booking  - an active booking overlaps the window
2. availability    - the resource is missing, inactive or not bookable
3. capacity        - active overlapping bookings already fill the resource

The check is read-only. Callers that want an audit trail record findings
with log_conflict. The check alone does not make check-then-insert atomic;
booking_service serializes creators per resource and PostgreSQL enforces
an exclusion constraint on active booking windows.
"""
import logging
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from arts_booking.core.structured_logging import build_log_context
from arts_booking.db.enums import (
    ACTIVE_BOOKING_STATUSES,
    DEFAULT_CONFLICT_SEVERITY,
    ConflictSeverity,
    ConflictStatus,
    ConflictType,
)
from arts_booking.db.models import Booking, ConflictLog, Resource
from arts_booking.schemas.conflict import conflict_payload_adapter

logger = logging.getLogger(__name__)


# =============================================================================
# Errors
# =============================================================================

class ConflictServiceError(Exception):
    """Base exception for conflict service errors."""

    pass


class ConflictStoreError(ConflictServiceError):
    """The store failed while reading or writing; conflict status is unknown."""

    pass


class ConflictNotFoundError(ConflictServiceError):
    """Conflict log not found."""

    pass


class InvalidConflictTransitionError(ConflictServiceError):
    """Conflict log cannot move to the requested status."""

    pass


class ConflictPayloadError(ConflictServiceError, ValueError):
    """conflict_data does not match the shape for its conflict_type."""

    pass


# =============================================================================
# Findings
# =============================================================================

DOUBLE_BOOKING_RESOLUTIONS = [
    "Choose a different time slot",
    "Select a different resource",
    "Contact the existing booking holder to coordinate",
]

CAPACITY_RESOLUTIONS = [
    "Choose a different time slot",
    "Select a different resource with higher capacity",
    "Reduce the number of participants",
]

# reason -> (severity, message, suggested resolutions)
UNAVAILABLE_FINDINGS: dict[str, tuple[ConflictSeverity, str, list[str]]] = {
    "not_found": (
        ConflictSeverity.CRITICAL,
        "Resource not found",
        [
            "Select a different resource",
            "Contact support if this resource should be available",
        ],
    ),
    "inactive": (
        ConflictSeverity.HIGH,
        "Resource is currently inactive",
        [
            "Select a different resource",
            "Contact support to reactivate this resource",
        ],
    ),
    "not_bookable": (
        ConflictSeverity.MEDIUM,
        "Resource is not available for booking",
        [
            "Select a different resource",
            "Contact support for special booking arrangements",
        ],
    ),
}


@dataclass
class BookingConflict:
    """A single conflict finding for a candidate booking window."""

    type: ConflictType
    severity: ConflictSeverity
    message: str
    conflicting_bookings: list[Booking] | None = None
    suggested_resolutions: list[str] | None = None
    # Context for building a conflict log payload
    reason: str | None = None
    current_participants: int | None = None
    capacity: int | None = None

    def to_log_payload(self, start_time: datetime, end_time: datetime) -> dict:
        """Build the conflict_data payload for logging this finding."""
        payload: dict = {
            "start_time": normalize_utc(start_time),
            "end_time": normalize_utc(end_time),
        }
        if self.type == ConflictType.DOUBLE_BOOKING:
            payload["conflicting_booking_ids"] = [
                b.id for b in (self.conflicting_bookings or [])
            ]
        elif self.type == ConflictType.RESOURCE_UNAVAILABLE:
            payload["reason"] = self.reason
        elif self.type == ConflictType.CAPACITY_EXCEEDED:
            payload["current_participants"] = self.current_participants
            payload["capacity"] = self.capacity
        return payload


# =============================================================================
# Helpers
# =============================================================================

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@contextmanager
def _store_call(action: str, **log_context):
    """Wrap store access so failures surface as ConflictStoreError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception(
            "Conflict store failure while %s", action, extra=build_log_context(**log_context)
        )
        raise ConflictStoreError(f"Database error: {exc}") from exc


def get_resource(db: Session, org_id: UUID, resource_id: UUID) -> Resource | None:
    """Get a resource scoped to org."""
    return db.query(Resource).filter(
        Resource.id == resource_id,
        Resource.organization_id == org_id,
    ).first()


def _overlapping_bookings_query(
    db: Session,
    org_id: UUID,
    resource_id: UUID,
    start_time: datetime,
    end_time: datetime,
    exclude_booking_id: UUID | None = None,
    *entities,
):
    """Active bookings on the resource whose [start, end) intersects the window."""
    query = db.query(*(entities or (Booking,))).filter(
        Booking.organization_id == org_id,
        Booking.resource_id == resource_id,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        # Half-open overlap: touching endpoints do not intersect
        Booking.start_time < end_time,
        Booking.end_time > start_time,
    )
    if exclude_booking_id:
        query = query.filter(Booking.id != exclude_booking_id)
    return query


# =============================================================================
# Conflict Checks
# =============================================================================

def check_booking_conflicts(
    db: Session,
    org_id: UUID,
    resource_id: UUID,
    start_time: datetime,
    end_time: datetime,
    exclude_booking_id: UUID | None = None,
) -> list[BookingConflict]:
    """
    Check a candidate booking window for conflicts.

    All three checks always run; a resource can fail more than one.
    The window itself is not validated: callers should reject
    start_time >= end_time before calling.

    Raises:
        ConflictStoreError: the store failed; conflict status is unknown
    """
    start_time = normalize_utc(start_time)
    end_time = normalize_utc(end_time)
    context = build_log_context(org_id=org_id, resource_id=resource_id)
    logger.info(
        "Checking booking conflicts for window %s to %s",
        start_time.isoformat(),
        end_time.isoformat(),
        extra=context,
    )

    findings = [
        check_double_booking(db, org_id, resource_id, start_time, end_time, exclude_booking_id),
        check_resource_availability(db, org_id, resource_id),
        check_capacity(db, org_id, resource_id, start_time, end_time, exclude_booking_id),
    ]
    conflicts = [f for f in findings if f is not None]

    for conflict in conflicts:
        logger.warning(
            "Booking conflict detected: %s (%s)",
            conflict.type.value,
            conflict.severity.value,
            extra=context,
        )
    logger.info("Found %d booking conflicts", len(conflicts), extra=context)
    return conflicts


def check_double_booking(
    db: Session,
    org_id: UUID,
    resource_id: UUID,
    start_time: datetime,
    end_time: datetime,
    exclude_booking_id: UUID | None = None,
) -> BookingConflict | None:
    """Flag active bookings overlapping the window. Always high severity."""
    with _store_call("checking double bookings", org_id=org_id, resource_id=resource_id):
        conflicting = _overlapping_bookings_query(
            db, org_id, resource_id, start_time, end_time, exclude_booking_id
        ).order_by(Booking.start_time).all()

    if not conflicting:
        return None

    return BookingConflict(
        type=ConflictType.DOUBLE_BOOKING,
        severity=ConflictSeverity.HIGH,
        message="Resource is already booked during this time period",
        conflicting_bookings=conflicting,
        suggested_resolutions=list(DOUBLE_BOOKING_RESOLUTIONS),
    )


def check_resource_availability(
    db: Session,
    org_id: UUID,
    resource_id: UUID,
) -> BookingConflict | None:
    """
    Flag a resource that cannot take bookings.

    First match wins: not found (critical), inactive (high),
    not bookable (medium).
    """
    with _store_call("checking resource availability", org_id=org_id, resource_id=resource_id):
        resource = get_resource(db, org_id, resource_id)

    if resource is None:
        reason = "not_found"
    elif not resource.is_active:
        reason = "inactive"
    elif not resource.is_bookable:
        reason = "not_bookable"
    else:
        return None

    severity, message, resolutions = UNAVAILABLE_FINDINGS[reason]
    return BookingConflict(
        type=ConflictType.RESOURCE_UNAVAILABLE,
        severity=severity,
        message=message,
        suggested_resolutions=list(resolutions),
        reason=reason,
    )


def check_capacity(
    db: Session,
    org_id: UUID,
    resource_id: UUID,
    start_time: datetime,
    end_time: datetime,
    exclude_booking_id: UUID | None = None,
) -> BookingConflict | None:
    """
    Flag a window whose existing load already meets the resource capacity.

    Compares the participants of active overlapping bookings against
    capacity; the candidate's own participants are not added.
    A missing resource or an empty capacity means no constraint.
    """
    with _store_call("checking capacity", org_id=org_id, resource_id=resource_id):
        resource = get_resource(db, org_id, resource_id)
        if resource is None or not resource.capacity:
            return None
        rows = _overlapping_bookings_query(
            db, org_id, resource_id, start_time, end_time, exclude_booking_id,
            Booking.current_participants,
        ).all()

    total_participants = sum(row[0] or 0 for row in rows)
    if total_participants < resource.capacity:
        return None

    return BookingConflict(
        type=ConflictType.CAPACITY_EXCEEDED,
        severity=ConflictSeverity.MEDIUM,
        message=f"Resource capacity exceeded ({total_participants}/{resource.capacity})",
        suggested_resolutions=list(CAPACITY_RESOLUTIONS),
        current_participants=total_participants,
        capacity=resource.capacity,
    )


# =============================================================================
# Conflict Logs
# =============================================================================

def _validate_payload(conflict_type: ConflictType, conflict_data: dict | BaseModel) -> dict:
    if isinstance(conflict_data, BaseModel):
        conflict_data = conflict_data.model_dump()
    try:
        payload = conflict_payload_adapter.validate_python(
            {**conflict_data, "conflict_type": conflict_type.value}
        )
    except ValidationError as exc:
        raise ConflictPayloadError(
            f"Invalid {conflict_type.value} payload: {exc.error_count()} error(s)"
        ) from exc
    return payload.model_dump(mode="json")


def log_conflict(
    db: Session,
    org_id: UUID,
    resource_id: UUID | None,
    conflict_type: ConflictType,
    conflict_data: dict | BaseModel,
    severity: ConflictSeverity = DEFAULT_CONFLICT_SEVERITY,
) -> ConflictLog:
    """
    Record a conflict in status open.

    No de-duplication: logging the same conflict twice creates two rows.
    """
    conflict_type = ConflictType(conflict_type)
    severity = ConflictSeverity(severity)
    data = _validate_payload(conflict_type, conflict_data)
    now = _utcnow()

    log = ConflictLog(
        organization_id=org_id,
        resource_id=resource_id,
        conflict_type=conflict_type.value,
        conflict_data=data,
        severity=severity.value,
        status=ConflictStatus.OPEN.value,
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(log)
        db.commit()
        db.refresh(log)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "Failed to log conflict",
            extra=build_log_context(org_id=org_id, resource_id=resource_id),
        )
        raise ConflictStoreError(f"Database error: {exc}") from exc

    logger.info(
        "Logged %s conflict",
        conflict_type.value,
        extra=build_log_context(org_id=org_id, resource_id=resource_id, conflict_id=log.id),
    )
    return log


def log_booking_conflicts(
    db: Session,
    org_id: UUID,
    resource_id: UUID,
    start_time: datetime,
    end_time: datetime,
    conflicts: list[BookingConflict],
) -> list[ConflictLog]:
    """Record one conflict log per finding, keeping each finding's severity."""
    return [
        log_conflict(
            db,
            org_id,
            # A missing resource cannot be referenced by foreign key
            None if conflict.reason == "not_found" else resource_id,
            conflict.type,
            conflict.to_log_payload(start_time, end_time),
            conflict.severity,
        )
        for conflict in conflicts
    ]


def get_conflict_for_org(db: Session, org_id: UUID, conflict_id: UUID) -> ConflictLog | None:
    """Get a single conflict log scoped to org."""
    with _store_call("loading conflict", org_id=org_id, conflict_id=conflict_id):
        return db.query(ConflictLog).options(joinedload(ConflictLog.resource)).filter(
            ConflictLog.id == conflict_id,
            ConflictLog.organization_id == org_id,
        ).first()


def _transition(
    db: Session,
    conflict_id: UUID,
    allowed_from: tuple[str, ...],
    to_status: ConflictStatus,
    **fields,
) -> ConflictLog:
    with _store_call("loading conflict", conflict_id=conflict_id):
        log = db.query(ConflictLog).filter(ConflictLog.id == conflict_id).first()
    if not log:
        raise ConflictNotFoundError(f"Conflict {conflict_id} not found")
    if log.status not in allowed_from:
        raise InvalidConflictTransitionError(
            f"Cannot move conflict from {log.status} to {to_status.value}"
        )

    log.status = to_status.value
    for name, value in fields.items():
        setattr(log, name, value)
    log.updated_at = _utcnow()
    try:
        db.commit()
        db.refresh(log)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "Failed to update conflict", extra=build_log_context(conflict_id=conflict_id)
        )
        raise ConflictStoreError(f"Database error: {exc}") from exc

    logger.info(
        "Conflict moved to %s",
        to_status.value,
        extra=build_log_context(org_id=log.organization_id, conflict_id=conflict_id),
    )
    return log


def resolve_conflict(
    db: Session,
    conflict_id: UUID,
    resolution: str,
    resolved_by: str,
    resolution_notes: str | None = None,
) -> ConflictLog:
    """
    Resolve an open or investigating conflict and stamp resolution metadata.

    Raises:
        ConflictNotFoundError: no conflict log with this id
        InvalidConflictTransitionError: the conflict is already closed
    """
    return _transition(
        db,
        conflict_id,
        (ConflictStatus.OPEN.value, ConflictStatus.INVESTIGATING.value),
        ConflictStatus.RESOLVED,
        resolution=resolution,
        resolved_at=_utcnow(),
        resolved_by=resolved_by,
        resolution_notes=resolution_notes,
    )


def mark_investigating(db: Session, conflict_id: UUID) -> ConflictLog:
    """Move an open conflict to investigating."""
    return _transition(
        db, conflict_id, (ConflictStatus.OPEN.value,), ConflictStatus.INVESTIGATING
    )


def ignore_conflict(
    db: Session,
    conflict_id: UUID,
    resolved_by: str,
    resolution_notes: str | None = None,
) -> ConflictLog:
    """Close a conflict without resolving it."""
    return _transition(
        db,
        conflict_id,
        (ConflictStatus.OPEN.value, ConflictStatus.INVESTIGATING.value),
        ConflictStatus.IGNORED,
        resolved_at=_utcnow(),
        resolved_by=resolved_by,
        resolution_notes=resolution_notes,
    )


def get_conflicts(
    db: Session,
    org_id: UUID,
    status: ConflictStatus | None = None,
    severity: ConflictSeverity | None = None,
) -> list[ConflictLog]:
    """List conflict logs for an org, newest first, with their resource loaded."""
    with _store_call("listing conflicts", org_id=org_id):
        query = db.query(ConflictLog).options(joinedload(ConflictLog.resource)).filter(
            ConflictLog.organization_id == org_id
        )
        if status:
            query = query.filter(ConflictLog.status == ConflictStatus(status).value)
        if severity:
            query = query.filter(ConflictLog.severity == ConflictSeverity(severity).value)
        return query.order_by(ConflictLog.created_at.desc()).all()


def get_conflict_stats(db: Session, org_id: UUID) -> dict:
    """
    Count an org's conflict logs.

    open and resolved count only those statuses; investigating and
    ignored logs appear in total, by_type and by_severity.
    """
    with _store_call("computing conflict stats", org_id=org_id):
        rows = db.query(
            ConflictLog.status, ConflictLog.conflict_type, ConflictLog.severity
        ).filter(ConflictLog.organization_id == org_id).all()

    statuses = Counter(row.status for row in rows)
    return {
        "total": len(rows),
        "open": statuses[ConflictStatus.OPEN.value],
        "resolved": statuses[ConflictStatus.RESOLVED.value],
        "by_type": dict(Counter(row.conflict_type for row in rows)),
        "by_severity": dict(Counter(row.severity for row in rows)),
    }
