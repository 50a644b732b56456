"""SQLAlchemy ORM models for tenants, resources, bookings and conflict logs."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, CheckConstraint, ForeignKey, Index, Integer, JSON, String, Text, Uuid, text
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from arts_booking.db.base import Base
from arts_booking.db.enums import (
    ACTIVE_BOOKING_STATUSES,
    DEFAULT_BOOKING_STATUS,
    ConflictStatus,
    ResourceType,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# JSONB on PostgreSQL, plain JSON elsewhere
JsonType = JSON().with_variant(JSONB(), "postgresql")


# =============================================================================
# Tenant
# =============================================================================

class Organization(Base):
    """
    A tenant (arts organization).
    
    Resources, bookings and conflict logs belong to an organization
    and must be scoped by organization_id in all queries.
    """
    __tablename__ = "organizations"
    
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    timezone: Mapped[str] = mapped_column(
        String(50),
        default="America/New_York",
        server_default=text("'America/New_York'"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=_utcnow, onupdate=_utcnow, nullable=False)
    
    resources: Mapped[list["Resource"]] = relationship(
        back_populates="organization",
        cascade="all, delete-orphan",
    )


# =============================================================================
# Resources & Bookings
# =============================================================================

class Resource(Base):
    """
    A bookable thing: a studio space, a piece of equipment, a person's time.
    
    capacity is the maximum number of concurrent participants across all
    active overlapping bookings; NULL means unconstrained.
    """
    __tablename__ = "resources"
    __table_args__ = (
        Index("idx_resources_org", "organization_id", "is_active"),
    )
    
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(
        String(20), default=ResourceType.SPACE.value, nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_bookable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=_utcnow, onupdate=_utcnow, nullable=False)
    
    organization: Mapped["Organization"] = relationship(back_populates="resources")
    bookings: Mapped[list["Booking"]] = relationship(back_populates="resource")


class Booking(Base):
    """
    A reservation of a Resource for the half-open interval [start_time, end_time).
    
    Only pending and confirmed bookings occupy the window. On PostgreSQL the
    migration adds an exclusion constraint so overlapping active bookings
    on the same resource cannot both be inserted.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_bookings_window"),
        CheckConstraint("current_participants >= 0", name="ck_bookings_participants"),
        Index("idx_bookings_resource_window", "resource_id", "start_time", "end_time"),
        Index("idx_bookings_org_status", "organization_id", "status"),
    )
    
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    resource_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
    )
    # External identity of whoever requested the booking
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(nullable=False)
    end_time: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_BOOKING_STATUS.value, nullable=False
    )
    current_participants: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=_utcnow, onupdate=_utcnow, nullable=False)
    
    resource: Mapped["Resource"] = relationship(back_populates="bookings")
    
    @property
    def occupies_slot(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES


# =============================================================================
# Conflict Logs
# =============================================================================

class ConflictLog(Base):
    """
    Audit record of a detected or reported scheduling conflict.
    
    conflict_data holds the payload for conflict_type (see
    schemas.conflict.ConflictPayload). Closed logs (resolved/ignored)
    are not mutated again.
    """
    __tablename__ = "conflict_logs"
    __table_args__ = (
        Index("idx_conflict_logs_org_status", "organization_id", "status"),
        Index("idx_conflict_logs_org_created", "organization_id", "created_at"),
    )
    
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    resource_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("resources.id", ondelete="SET NULL"),
        nullable=True,
    )
    conflict_type: Mapped[str] = mapped_column(String(40), nullable=False)
    conflict_data: Mapped[dict] = mapped_column(JsonType, default=dict, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ConflictStatus.OPEN.value, nullable=False
    )
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    
    resource: Mapped["Resource | None"] = relationship()
