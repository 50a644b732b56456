"""
Conflict log endpoints for operators.

List, summarize and close the conflicts recorded for an organization.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from arts_booking.core.deps import get_db, get_organization
from arts_booking.db.enums import ConflictSeverity, ConflictStatus, ConflictType
from arts_booking.db.models import Organization
from arts_booking.schemas.conflict import (
    ConflictIgnore,
    ConflictLogCreate,
    ConflictLogRead,
    ConflictResolve,
    ConflictSeverityParam,
    ConflictStatsRead,
    ConflictStatusParam,
)
from arts_booking.services import conflict_service

router = APIRouter(prefix="/organizations/{org_id}/conflicts", tags=["conflicts"])


def _require_conflict(db: Session, org_id: UUID, conflict_id: UUID):
    """Verify the conflict belongs to the org."""
    try:
        conflict = conflict_service.get_conflict_for_org(db, org_id, conflict_id)
    except conflict_service.ConflictStoreError:
        raise HTTPException(status_code=500, detail="Failed to load conflict")
    if not conflict:
        raise HTTPException(status_code=404, detail="Conflict not found")
    return conflict


def _close(action, *args, **kwargs):
    try:
        return action(*args, **kwargs)
    except conflict_service.ConflictNotFoundError:
        raise HTTPException(status_code=404, detail="Conflict not found")
    except conflict_service.InvalidConflictTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except conflict_service.ConflictStoreError:
        raise HTTPException(status_code=500, detail="Failed to update conflict")


@router.get("", response_model=list[ConflictLogRead])
def list_conflicts(
    status: Optional[ConflictStatusParam] = Query(None, description="Filter by status"),
    severity: Optional[ConflictSeverityParam] = Query(None, description="Filter by severity"),
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    """List conflict logs, newest first."""
    try:
        return conflict_service.get_conflicts(
            db,
            org.id,
            status=ConflictStatus(status) if status else None,
            severity=ConflictSeverity(severity) if severity else None,
        )
    except conflict_service.ConflictStoreError:
        raise HTTPException(status_code=500, detail="Failed to fetch conflicts")


@router.get("/stats", response_model=ConflictStatsRead)
def get_conflict_stats(
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    """Counts by status, type and severity."""
    try:
        return conflict_service.get_conflict_stats(db, org.id)
    except conflict_service.ConflictStoreError:
        raise HTTPException(status_code=500, detail="Failed to fetch conflict stats")


@router.post("", status_code=201, response_model=ConflictLogRead)
def log_conflict(
    data: ConflictLogCreate,
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    """Record a conflict reported outside the booking flow."""
    if data.resource_id and not conflict_service.get_resource(db, org.id, data.resource_id):
        raise HTTPException(status_code=404, detail="Resource not found")
    try:
        return conflict_service.log_conflict(
            db,
            org.id,
            data.resource_id,
            ConflictType(data.conflict_type),
            data.conflict_data,
            ConflictSeverity(data.severity),
        )
    except conflict_service.ConflictPayloadError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except conflict_service.ConflictStoreError:
        raise HTTPException(status_code=500, detail="Failed to log conflict")


@router.get("/{conflict_id}", response_model=ConflictLogRead)
def get_conflict(
    conflict_id: UUID,
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    return _require_conflict(db, org.id, conflict_id)


@router.post("/{conflict_id}/resolve", response_model=ConflictLogRead)
def resolve_conflict(
    conflict_id: UUID,
    data: ConflictResolve,
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    """Resolve a conflict and record how."""
    _require_conflict(db, org.id, conflict_id)
    return _close(
        conflict_service.resolve_conflict,
        db,
        conflict_id,
        data.resolution,
        data.resolved_by,
        data.resolution_notes,
    )


@router.post("/{conflict_id}/investigate", response_model=ConflictLogRead)
def investigate_conflict(
    conflict_id: UUID,
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    """Mark an open conflict as under investigation."""
    _require_conflict(db, org.id, conflict_id)
    return _close(conflict_service.mark_investigating, db, conflict_id)


@router.post("/{conflict_id}/ignore", response_model=ConflictLogRead)
def ignore_conflict(
    conflict_id: UUID,
    data: ConflictIgnore,
    org: Organization = Depends(get_organization),
    db: Session = Depends(get_db),
):
    """Close a conflict without action."""
    _require_conflict(db, org.id, conflict_id)
    return _close(
        conflict_service.ignore_conflict,
        db,
        conflict_id,
        data.resolved_by,
        data.resolution_notes,
    )
