"""Bounded-time liveness probe for a single service."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

import httpx

from healthgate.errors import ProbeError, ProbeNetworkError, ProbeTimeout
from healthgate.registry.models import ProbeResult, ServiceDescriptor

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 1000

ProbeFunc = Callable[[ServiceDescriptor, int, Optional[httpx.AsyncClient]], Awaitable[ProbeResult]]


async def _request_status(client: httpx.AsyncClient, url: str, timeout: float) -> int:
    """GET *url* and return the status code, translating failures to ProbeError."""
    try:
        resp = await asyncio.wait_for(client.get(url, timeout=timeout), timeout=timeout)
    except (TimeoutError, httpx.TimeoutException) as exc:
        raise ProbeTimeout(f"Timeout after {timeout * 1000:.0f}ms") from exc
    except (httpx.TransportError, OSError) as exc:
        raise ProbeNetworkError(f"{type(exc).__name__}: {exc}") from exc
    return resp.status_code


async def probe(
    descriptor: ServiceDescriptor,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    client: Optional[httpx.AsyncClient] = None,
) -> ProbeResult:
    """Check one service's health endpoint within *timeout_ms*.

    Available only for a 2xx answer received in time. Timeouts, network
    errors and non-2xx statuses all produce ``available=False``; nothing but
    cancellation escapes. The in-flight request is cancelled at the bound,
    so the call returns even if the transport ignores its own timeout.
    """
    timeout = timeout_ms / 1000
    url = descriptor.health_url
    start = time.monotonic()

    def _elapsed() -> float:
        return round((time.monotonic() - start) * 1000, 1)

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                status_code = await _request_status(own_client, url, timeout)
        else:
            status_code = await _request_status(client, url, timeout)
    except ProbeError as exc:
        logger.debug("Probe %s (%s) failed: %s", descriptor.name, url, exc)
        return ProbeResult(
            service=descriptor,
            available=False,
            latency_ms=_elapsed(),
            error=str(exc),
            failure=exc.failure,
        )
    except Exception as exc:
        logger.warning("Probe %s (%s) raised unexpectedly: %s", descriptor.name, url, exc)
        return ProbeResult(
            service=descriptor,
            available=False,
            latency_ms=_elapsed(),
            error=str(exc) or type(exc).__name__,
            failure="network",
        )

    healthy = 200 <= status_code < 300
    return ProbeResult(
        service=descriptor,
        available=healthy,
        status_code=status_code,
        latency_ms=_elapsed(),
        error=None if healthy else f"HTTP {status_code}",
        failure=None if healthy else "status",
    )
