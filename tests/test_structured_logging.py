"""Tests for structured logging helpers."""

import logging
import uuid

from arts_booking.core.structured_logging import build_log_context, configure_logging


def test_build_log_context_includes_only_provided_fields():
    org_id = uuid.uuid4()
    context = build_log_context(
        org_id=org_id,
        resource_id="resource-1",
        request_id="req-1",
        route="/organizations/{org_id}/bookings",
    )

    assert context == {
        "org_id": str(org_id),
        "resource_id": "resource-1",
        "request_id": "req-1",
        "route": "/organizations/{org_id}/bookings",
    }


def test_build_log_context_ignores_empty_fields():
    context = build_log_context(
        org_id="",
        booking_id=None,
        conflict_id="conflict-1",
    )

    assert context == {"conflict_id": "conflict-1"}


def test_configure_logging_falls_back_to_info(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging("not-a-level")
    configure_logging("debug")

    assert calls[0]["level"] == logging.INFO
    assert calls[1]["level"] == logging.DEBUG
