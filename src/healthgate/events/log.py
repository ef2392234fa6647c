"""Bounded in-memory history of gateway events, served by ``/api/events``."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Optional

from healthgate.events.emitter import GatewayEvent


class EventLog:
    """Keeps the last ``max_size`` events. Implements the EventListener protocol."""

    def __init__(self, max_size: int = 100) -> None:
        self._events: deque[GatewayEvent] = deque(maxlen=max_size)
        self._lock = asyncio.Lock()

    async def on_event(self, event: GatewayEvent) -> None:
        async with self._lock:
            self._events.append(event)

    @staticmethod
    def _matches(event: GatewayEvent, event_type: Optional[str], service: Optional[str]) -> bool:
        if event_type and event.event_type != event_type:
            return False
        if service and event.data.get("service") != service:
            return False
        return True

    async def get_recent(
        self,
        limit: int = 20,
        event_type: Optional[str] = None,
        service: Optional[str] = None,
    ) -> list[GatewayEvent]:
        """Newest first, optionally narrowed to one event type and/or one service."""
        async with self._lock:
            matching = [e for e in reversed(self._events) if self._matches(e, event_type, service)]
        return matching[: max(limit, 0)]
