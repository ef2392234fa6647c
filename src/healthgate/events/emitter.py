"""Event emitter, listener protocol, and gateway event dataclass."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

logger = logging.getLogger(__name__)

EVENT_TYPES = frozenset(
    {"snapshot.published", "service.up", "service.down", "forward.failed"}
)


@dataclass
class GatewayEvent:
    """A typed event emitted by the gateway."""

    event_type: str  # "snapshot.published", "service.down", etc.
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


class EventListener(Protocol):
    """Protocol for consuming gateway events."""

    async def on_event(self, event: GatewayEvent) -> None: ...


class EventEmitter:
    """Dispatches gateway events to listeners. Listener errors are logged, not raised."""

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    async def emit(self, event: GatewayEvent) -> None:
        for listener in self._listeners:
            try:
                await listener.on_event(event)
            except Exception:
                logger.exception("Event listener error")
