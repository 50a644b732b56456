"""Structured logging helpers (PII-safe)."""

import logging
from typing import Any


def build_log_context(
    *,
    org_id: str | None = None,
    resource_id: str | None = None,
    booking_id: str | None = None,
    conflict_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict."""
    context: dict[str, Any] = {}
    if org_id:
        context["org_id"] = str(org_id)
    if resource_id:
        context["resource_id"] = str(resource_id)
    if booking_id:
        context["booking_id"] = str(booking_id)
    if conflict_id:
        context["conflict_id"] = str(conflict_id)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    return context


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the API process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
