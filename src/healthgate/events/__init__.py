"""Gateway event system for healthgate."""

from __future__ import annotations

from healthgate.events.emitter import EventEmitter, EventListener, GatewayEvent
from healthgate.events.log import EventLog
from healthgate.events.webhook import WebhookListener

__all__ = [
    "EventEmitter",
    "EventListener",
    "EventLog",
    "GatewayEvent",
    "WebhookListener",
]
