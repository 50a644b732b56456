"""Tests for the conflict log API."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from arts_booking.db.enums import ConflictSeverity, ConflictType
from arts_booking.services import conflict_service


START = datetime(2030, 3, 4, 9, 0, tzinfo=timezone.utc)
END = START + timedelta(hours=1)


def _url(org, suffix: str = "") -> str:
    return f"/organizations/{org.id}/conflicts{suffix}"


@pytest.fixture
def open_conflict(db, test_org, resource):
    return conflict_service.log_conflict(
        db,
        test_org.id,
        resource.id,
        ConflictType.CAPACITY_EXCEEDED,
        {"start_time": START, "end_time": END, "current_participants": 12, "capacity": 10},
        ConflictSeverity.MEDIUM,
    )


async def test_log_conflict(client: AsyncClient, test_org, resource):
    response = await client.post(
        _url(test_org),
        json={
            "resource_id": str(resource.id),
            "conflict_type": "timezone_mismatch",
            "severity": "low",
            "conflict_data": {
                "start_time": START.isoformat(),
                "end_time": END.isoformat(),
                "booking_timezone": "Europe/Berlin",
                "resource_timezone": "America/New_York",
            },
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "open"
    assert data["severity"] == "low"
    assert data["conflict_data"]["booking_timezone"] == "Europe/Berlin"


async def test_log_conflict_invalid_payload_returns_422(client: AsyncClient, test_org, resource):
    response = await client.post(
        _url(test_org),
        json={
            "resource_id": str(resource.id),
            "conflict_type": "capacity_exceeded",
            "conflict_data": {"start_time": START.isoformat(), "end_time": END.isoformat()},
        },
    )

    assert response.status_code == 422


async def test_log_conflict_for_foreign_resource_returns_404(
    client: AsyncClient, test_org, other_org, make_resource
):
    foreign = make_resource(org=other_org)

    response = await client.post(
        _url(test_org),
        json={
            "resource_id": str(foreign.id),
            "conflict_type": "resource_unavailable",
            "conflict_data": {
                "start_time": START.isoformat(),
                "end_time": END.isoformat(),
                "reason": "inactive",
            },
        },
    )

    assert response.status_code == 404


async def test_list_conflicts_with_filters(client: AsyncClient, test_org, resource, open_conflict):
    response = await client.get(_url(test_org))
    assert response.status_code == 200
    [item] = response.json()
    assert item["id"] == str(open_conflict.id)
    assert item["resource"] == {"id": str(resource.id), "title": "Print Studio", "type": "space"}

    response = await client.get(_url(test_org), params={"status": "resolved"})
    assert response.json() == []

    response = await client.get(_url(test_org), params={"severity": "bogus"})
    assert response.status_code == 422


async def test_resolve_conflict(client: AsyncClient, test_org, open_conflict):
    response = await client.post(
        _url(test_org, f"/{open_conflict.id}/resolve"),
        json={"resolution": "capacity raised", "resolved_by": "ops", "resolution_notes": "New chairs"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "resolved"
    assert data["resolution"] == "capacity raised"
    assert data["resolved_by"] == "ops"
    assert data["resolved_at"] is not None

    response = await client.post(
        _url(test_org, f"/{open_conflict.id}/resolve"),
        json={"resolution": "again", "resolved_by": "ops"},
    )
    assert response.status_code == 409


async def test_investigate_then_ignore(client: AsyncClient, test_org, open_conflict):
    response = await client.post(_url(test_org, f"/{open_conflict.id}/investigate"))
    assert response.status_code == 200
    assert response.json()["status"] == "investigating"

    response = await client.post(
        _url(test_org, f"/{open_conflict.id}/ignore"), json={"resolved_by": "ops"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "ignored"


async def test_conflict_from_other_org_returns_404(client: AsyncClient, other_org, open_conflict):
    response = await client.get(_url(other_org, f"/{open_conflict.id}"))
    assert response.status_code == 404

    response = await client.post(
        _url(other_org, f"/{open_conflict.id}/resolve"),
        json={"resolution": "done", "resolved_by": "ops"},
    )
    assert response.status_code == 404


async def test_unknown_conflict_returns_404(client: AsyncClient, test_org):
    response = await client.get(_url(test_org, f"/{uuid.uuid4()}"))

    assert response.status_code == 404
    assert response.json()["detail"] == "Conflict not found"


async def test_conflict_stats(client: AsyncClient, db, test_org, resource, open_conflict):
    conflict_service.log_conflict(
        db,
        test_org.id,
        resource.id,
        ConflictType.DOUBLE_BOOKING,
        {"start_time": START, "end_time": END, "conflicting_booking_ids": []},
        ConflictSeverity.HIGH,
    )
    conflict_service.resolve_conflict(db, open_conflict.id, "done", "ops")

    response = await client.get(_url(test_org, "/stats"))

    assert response.status_code == 200
    assert response.json() == {
        "total": 2,
        "open": 1,
        "resolved": 1,
        "by_type": {"capacity_exceeded": 1, "double_booking": 1},
        "by_severity": {"medium": 1, "high": 1},
    }


async def test_list_conflicts_store_failure_returns_500(client: AsyncClient, test_org, monkeypatch):
    def failing_list(*args, **kwargs):
        raise conflict_service.ConflictStoreError("Database error: connection lost")

    monkeypatch.setattr(conflict_service, "get_conflicts", failing_list)

    response = await client.get(_url(test_org))

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to fetch conflicts"
