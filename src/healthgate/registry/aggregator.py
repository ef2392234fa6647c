"""Concurrent fan-out of probes into a single availability snapshot."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Iterable, Optional

import httpx

from healthgate.registry.models import AvailabilitySnapshot, ProbeResult, ServiceDescriptor
from healthgate.registry.probe import DEFAULT_TIMEOUT_MS, ProbeFunc, probe

logger = logging.getLogger(__name__)

DEFAULT_CYCLE_OVERHEAD_MS = 250


class Aggregator:
    """Runs one probe per registered service concurrently.

    Every probe is bounded by ``timeout_ms`` and the whole cycle by
    ``max_cycle_ms``; probes still pending at that deadline are cancelled and
    recorded as unavailable. Results always come back in registry order.
    """

    def __init__(
        self,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        cycle_overhead_ms: int = DEFAULT_CYCLE_OVERHEAD_MS,
        probe_func: ProbeFunc = probe,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_ms = timeout_ms
        self.cycle_overhead_ms = cycle_overhead_ms
        self._probe = probe_func
        self._transport = transport

    @property
    def max_cycle_ms(self) -> int:
        return self.timeout_ms + self.cycle_overhead_ms

    async def run(self, services: Iterable[ServiceDescriptor]) -> AvailabilitySnapshot:
        """Probe every service and build the snapshot once all have settled."""
        descriptors = list(services)
        if not descriptors:
            return AvailabilitySnapshot.build([])

        start = time.monotonic()
        async with httpx.AsyncClient(transport=self._transport) as client:
            tasks = [
                asyncio.create_task(
                    self._probe(desc, self.timeout_ms, client),
                    name=f"probe-{desc.name}",
                )
                for desc in descriptors
            ]
            try:
                _, pending = await asyncio.wait(tasks, timeout=self.max_cycle_ms / 1000)
                if pending:
                    logger.warning(
                        "Probe cycle deadline of %dms exceeded; cancelling %d probe(s)",
                        self.max_cycle_ms,
                        len(pending),
                    )
            finally:
                # Covers both the cycle deadline and cancellation by the caller.
                stragglers = [task for task in tasks if not task.done()]
                for task in stragglers:
                    task.cancel()
                if stragglers:
                    await asyncio.gather(*stragglers, return_exceptions=True)

        results = [self._collect(desc, task) for desc, task in zip(descriptors, tasks)]
        snapshot = AvailabilitySnapshot.build(results)
        logger.info(
            "Probe cycle finished in %.0fms: %d/%d services available",
            (time.monotonic() - start) * 1000,
            snapshot.available_count,
            snapshot.total_count,
        )
        return snapshot

    def _collect(self, desc: ServiceDescriptor, task: asyncio.Task[ProbeResult]) -> ProbeResult:
        if task.cancelled():
            return ProbeResult(
                service=desc,
                available=False,
                latency_ms=float(self.max_cycle_ms),
                error=f"Cancelled at cycle deadline ({self.max_cycle_ms}ms)",
                failure="cancelled",
            )
        exc = task.exception()
        if exc is not None:
            logger.warning("Probe %s raised: %s", desc.name, exc)
            return ProbeResult(
                service=desc,
                available=False,
                error=str(exc) or type(exc).__name__,
                failure="network",
            )
        return task.result()
