"""Enum definitions for resources, bookings and conflict logs."""

from enum import Enum


class ResourceType(str, Enum):
    """Kinds of bookable resources."""

    SPACE = "space"
    EQUIPMENT = "equipment"
    PERSON = "person"
    WORKSHOP = "workshop"


class BookingStatus(str, Enum):
    """
    Booking lifecycle status.

    Flow: pending → confirmed → completed
              ↘ cancelled
                          ↘ no_show
    """

    PENDING = "pending"  # Requested, holds the slot
    CONFIRMED = "confirmed"  # Approved, holds the slot
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


# Statuses that occupy a resource's time window
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


class ConflictType(str, Enum):
    """Kinds of scheduling conflicts."""

    DOUBLE_BOOKING = "double_booking"
    TIMEZONE_MISMATCH = "timezone_mismatch"
    RESOURCE_UNAVAILABLE = "resource_unavailable"
    CAPACITY_EXCEEDED = "capacity_exceeded"


class ConflictSeverity(str, Enum):
    """Severity levels for conflicts."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ConflictStatus(str, Enum):
    """
    Conflict log lifecycle status.

    Flow: open → investigating → resolved
              ↘               ↘ ignored
    """

    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    IGNORED = "ignored"


DEFAULT_BOOKING_STATUS = BookingStatus.PENDING
DEFAULT_CONFLICT_SEVERITY = ConflictSeverity.MEDIUM
