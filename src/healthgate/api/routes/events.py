"""Recent gateway events endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(tags=["events"])


@router.get("/events")
async def get_recent_events(
    request: Request,
    limit: int = 20,
    event_type: str | None = None,
    service: str | None = None,
) -> list[dict[str, Any]]:
    """Return recent gateway events from the in-memory log, newest first.

    ``service`` keeps only events whose payload names that service.
    """
    event_log = request.app.state.event_log
    events = await event_log.get_recent(limit=limit, event_type=event_type, service=service)
    return [e.to_dict() for e in events]
