"""Fire-and-forget webhook delivery listener."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
from typing import TYPE_CHECKING

import httpx

from healthgate.events.emitter import GatewayEvent

if TYPE_CHECKING:
    from healthgate.config.models import WebhookConfig

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Healthgate-Signature"


class WebhookListener:
    """Posts matching events to configured webhook URLs. Implements EventListener protocol."""

    def __init__(
        self,
        webhooks: list[WebhookConfig],
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._webhooks = webhooks
        self._transport = transport
        self._pending: set[asyncio.Task[None]] = set()

    async def on_event(self, event: GatewayEvent) -> None:
        for wh in self._webhooks:
            if event.event_type in wh.events or "*" in wh.events:
                task = asyncio.create_task(
                    self._deliver(wh, event),
                    name=f"webhook-{wh.url}",
                )
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for deliveries still in flight."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def _deliver(self, wh: WebhookConfig, event: GatewayEvent) -> None:
        """Deliver one event. All exceptions caught and logged."""
        try:
            # Sign and send the exact same bytes
            body_bytes = json.dumps(event.to_dict()).encode()
            headers: dict[str, str] = {"Content-Type": "application/json"}
            if wh.secret:
                sig = hmac.new(
                    wh.secret.encode(), body_bytes, hashlib.sha256
                ).hexdigest()
                headers[SIGNATURE_HEADER] = sig
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                await client.post(wh.url, content=body_bytes, headers=headers)
        except Exception:
            logger.exception(
                "Webhook delivery failed for %s (event: %s)",
                wh.url,
                event.event_type,
            )
