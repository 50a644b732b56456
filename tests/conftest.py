"""
Test configuration and fixtures.

Provides:
- Database session with savepoint (rollback after each test)
- Organization / resource / booking factories
- HTTPX AsyncClient bound to the test session

Runs against in-memory SQLite unless DATABASE_URL points elsewhere.
"""
import os
import uuid
from datetime import datetime
from typing import AsyncGenerator, Generator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import Session

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["TESTING"] = "1"

from arts_booking.main import app
from arts_booking.core.deps import get_db
from arts_booking.db.base import Base
from arts_booking.db.enums import BookingStatus, ResourceType
from arts_booking.db.models import Booking, Organization, Resource
from arts_booking.db.session import engine


# =============================================================================
# Database Fixtures (Savepoint pattern)
# =============================================================================

@pytest.fixture(scope="session")
def db_engine():
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Generator[Session, None, None]:
    """
    Creates a database session with savepoint for test isolation.

    App code can call commit() and rollback() freely; both stop at the
    savepoint and the outer transaction is rolled back at the end.
    """
    connection = db_engine.connect()
    transaction = connection.begin()
    session = Session(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# =============================================================================
# Domain Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def test_org(db: Session) -> Organization:
    """Create a test organization."""
    org = Organization(
        id=uuid.uuid4(),
        name="Test Arts Collective",
        slug=f"test-org-{uuid.uuid4().hex[:8]}",
    )
    db.add(org)
    db.commit()
    return org


@pytest.fixture(scope="function")
def other_org(db: Session) -> Organization:
    org = Organization(
        id=uuid.uuid4(),
        name="Other Gallery",
        slug=f"other-org-{uuid.uuid4().hex[:8]}",
    )
    db.add(org)
    db.commit()
    return org


@pytest.fixture
def make_resource(db: Session, test_org: Organization):
    """Factory for resources in test_org (or another org)."""
    def _make(
        capacity: int | None = None,
        is_active: bool = True,
        is_bookable: bool = True,
        org: Organization | None = None,
        title: str = "Print Studio",
    ) -> Resource:
        resource = Resource(
            id=uuid.uuid4(),
            organization_id=(org or test_org).id,
            type=ResourceType.SPACE.value,
            title=title,
            capacity=capacity,
            is_active=is_active,
            is_bookable=is_bookable,
        )
        db.add(resource)
        db.commit()
        return resource
    return _make


@pytest.fixture
def resource(make_resource) -> Resource:
    """An active, bookable resource without a capacity limit."""
    return make_resource()


@pytest.fixture
def make_booking(db: Session, test_org: Organization):
    """Factory for bookings inserted directly, bypassing conflict checks."""
    def _make(
        resource: Resource,
        start: datetime,
        end: datetime,
        status: BookingStatus = BookingStatus.CONFIRMED,
        participants: int = 0,
    ) -> Booking:
        booking = Booking(
            id=uuid.uuid4(),
            organization_id=resource.organization_id,
            resource_id=resource.id,
            title="Existing booking",
            start_time=start,
            end_time=end,
            status=status.value,
            current_participants=participants,
        )
        db.add(booking)
        db.commit()
        return booking
    return _make


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient whose requests share the test session."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()
