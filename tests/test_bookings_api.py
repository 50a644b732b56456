"""Tests for the bookings API."""

import uuid
from datetime import datetime, timedelta, timezone

from httpx import AsyncClient

from arts_booking.db.enums import BookingStatus
from arts_booking.db.models import ConflictLog
from arts_booking.services import conflict_service


BASE_TIME = datetime(2030, 3, 4, 9, 0, tzinfo=timezone.utc)


def at(hours: float) -> str:
    return (BASE_TIME + timedelta(hours=hours)).isoformat()


def _url(org, suffix: str = "") -> str:
    return f"/organizations/{org.id}/bookings{suffix}"


def _payload(resource, start: float, end: float, **extra) -> dict:
    return {
        "resource_id": str(resource.id),
        "title": "Life drawing",
        "start_time": at(start),
        "end_time": at(end),
        **extra,
    }


# =============================================================================
# Create
# =============================================================================

async def test_create_booking(client: AsyncClient, test_org, resource):
    response = await client.post(_url(test_org), json=_payload(resource, 0, 2, current_participants=4))

    assert response.status_code == 201
    data = response.json()
    assert data["resource_id"] == str(resource.id)
    assert data["status"] == "pending"
    assert data["current_participants"] == 4


async def test_create_booking_conflict_returns_409_with_findings(
    client: AsyncClient, db, test_org, make_resource, make_booking
):
    room = make_resource(capacity=3)
    existing = make_booking(room, BASE_TIME, BASE_TIME + timedelta(hours=2), participants=3)

    response = await client.post(_url(test_org), json=_payload(room, 1, 3))

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "Booking conflicts detected"
    assert body["message"] == "Please resolve conflicts before creating the booking"
    assert [c["type"] for c in body["conflicts"]] == ["double_booking", "capacity_exceeded"]

    double_booking, capacity = body["conflicts"]
    assert double_booking["severity"] == "high"
    assert [b["id"] for b in double_booking["conflicting_bookings"]] == [str(existing.id)]
    assert "Choose a different time slot" in double_booking["suggested_resolutions"]
    assert capacity["severity"] == "medium"
    assert capacity["message"] == "Resource capacity exceeded (3/3)"

    assert db.query(ConflictLog).count() == 2


async def test_create_booking_back_to_back_succeeds(client: AsyncClient, test_org, resource, make_booking):
    make_booking(resource, BASE_TIME, BASE_TIME + timedelta(hours=1))

    response = await client.post(_url(test_org), json=_payload(resource, 1, 2))

    assert response.status_code == 201


async def test_create_booking_invalid_window_returns_400(client: AsyncClient, test_org, resource):
    response = await client.post(_url(test_org), json=_payload(resource, 2, 1))

    assert response.status_code == 400
    assert response.json()["detail"] == "start_time must be before end_time"


async def test_create_booking_store_failure_returns_500(
    client: AsyncClient, test_org, resource, monkeypatch
):
    def failing_check(*args, **kwargs):
        raise conflict_service.ConflictStoreError("Database error: connection lost")

    monkeypatch.setattr(conflict_service, "check_booking_conflicts", failing_check)

    response = await client.post(_url(test_org), json=_payload(resource, 0, 1))

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to check availability"


async def test_create_booking_missing_fields_returns_422(client: AsyncClient, test_org, resource):
    response = await client.post(_url(test_org), json={"resource_id": str(resource.id)})

    assert response.status_code == 422


async def test_create_booking_unknown_org_returns_404(client: AsyncClient, resource):
    response = await client.post(
        f"/organizations/{uuid.uuid4()}/bookings", json=_payload(resource, 0, 1)
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Organization not found"


# =============================================================================
# Check
# =============================================================================

async def test_check_free_window(client: AsyncClient, test_org, resource):
    response = await client.post(
        _url(test_org, "/check"),
        json={"resource_id": str(resource.id), "start_time": at(0), "end_time": at(1)},
    )

    assert response.status_code == 200
    assert response.json() == {"has_conflicts": False, "conflicts": []}


async def test_check_reports_without_logging(client: AsyncClient, db, test_org, make_resource):
    inactive = make_resource(is_active=False)

    response = await client.post(
        _url(test_org, "/check"),
        json={"resource_id": str(inactive.id), "start_time": at(0), "end_time": at(1)},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["has_conflicts"] is True
    assert [(c["type"], c["severity"]) for c in body["conflicts"]] == [("resource_unavailable", "high")]
    assert body["conflicts"][0]["message"] == "Resource is currently inactive"
    assert db.query(ConflictLog).count() == 0


async def test_check_excludes_booking_being_modified(client: AsyncClient, test_org, resource, make_booking):
    existing = make_booking(resource, BASE_TIME, BASE_TIME + timedelta(hours=2))

    response = await client.post(
        _url(test_org, "/check"),
        json={
            "resource_id": str(resource.id),
            "start_time": at(1),
            "end_time": at(3),
            "exclude_booking_id": str(existing.id),
        },
    )

    assert response.json()["has_conflicts"] is False


# =============================================================================
# Read & Manage
# =============================================================================

async def test_list_and_get_bookings(client: AsyncClient, test_org, resource, make_booking):
    later = make_booking(resource, BASE_TIME + timedelta(hours=4), BASE_TIME + timedelta(hours=5))
    earlier = make_booking(resource, BASE_TIME, BASE_TIME + timedelta(hours=1))

    response = await client.get(_url(test_org), params={"resource_id": str(resource.id)})
    assert response.status_code == 200
    assert [b["id"] for b in response.json()] == [str(earlier.id), str(later.id)]

    response = await client.get(_url(test_org, f"/{later.id}"))
    assert response.status_code == 200
    assert response.json()["title"] == "Existing booking"


async def test_get_booking_from_other_org_returns_404(
    client: AsyncClient, other_org, test_org, resource, make_booking
):
    booking = make_booking(resource, BASE_TIME, BASE_TIME + timedelta(hours=1))

    response = await client.get(_url(other_org, f"/{booking.id}"))

    assert response.status_code == 404


async def test_reschedule_booking(client: AsyncClient, test_org, resource, make_booking):
    booking = make_booking(resource, BASE_TIME, BASE_TIME + timedelta(hours=2))
    make_booking(resource, BASE_TIME + timedelta(hours=5), BASE_TIME + timedelta(hours=6))

    response = await client.post(
        _url(test_org, f"/{booking.id}/reschedule"),
        json={"start_time": at(1), "end_time": at(3)},
    )
    assert response.status_code == 200

    response = await client.post(
        _url(test_org, f"/{booking.id}/reschedule"),
        json={"start_time": at(4), "end_time": at(6)},
    )
    assert response.status_code == 409
    assert response.json()["conflicts"][0]["type"] == "double_booking"


async def test_reschedule_missing_booking_returns_404(client: AsyncClient, test_org):
    response = await client.post(
        _url(test_org, f"/{uuid.uuid4()}/reschedule"),
        json={"start_time": at(1), "end_time": at(3)},
    )

    assert response.status_code == 404


async def test_confirm_and_cancel(client: AsyncClient, test_org, resource, make_booking):
    booking = make_booking(
        resource, BASE_TIME, BASE_TIME + timedelta(hours=1), status=BookingStatus.PENDING
    )

    response = await client.post(_url(test_org, f"/{booking.id}/confirm"))
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"

    response = await client.post(_url(test_org, f"/{booking.id}/cancel"))
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    response = await client.post(_url(test_org, f"/{booking.id}/confirm"))
    assert response.status_code == 400


async def test_update_participants(client: AsyncClient, test_org, resource, make_booking):
    booking = make_booking(resource, BASE_TIME, BASE_TIME + timedelta(hours=1))

    response = await client.patch(
        _url(test_org, f"/{booking.id}/participants"), json={"current_participants": 6}
    )
    assert response.status_code == 200
    assert response.json()["current_participants"] == 6

    response = await client.patch(
        _url(test_org, f"/{booking.id}/participants"), json={"current_participants": -1}
    )
    assert response.status_code == 422
