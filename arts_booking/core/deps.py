"""FastAPI dependencies for database access and tenant scoping."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from arts_booking.db.models import Organization
from arts_booking.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.
    
    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_organization(org_id: UUID, db: Session = Depends(get_db)) -> Organization:
    """
    Resolve the organization in the request path.
    
    Raises:
        HTTPException 404: Organization does not exist
    """
    org = db.query(Organization).filter(Organization.id == org_id).first()
    if not org:
        raise HTTPException(status_code=404, detail="Organization not found")
    return org
