"""Gateway composer: owns the registry, the current snapshot and forwarding.

Lifecycle::

    starting -> probing_initial -> ready <-> reprobing
    ready -> shutting_down -> stopped

The current snapshot is replaced by a single reference assignment after a
full aggregation cycle, so readers never see a partially built view and the
read path needs no lock. Re-probes are serialized so there is one writer.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Optional

from healthgate.errors import DownstreamForwardError, GatewayUnavailableError, UnknownServiceError
from healthgate.events.emitter import EventEmitter, GatewayEvent
from healthgate.gateway.forwarding import ForwardedResponse, Forwarder, QueryParams
from healthgate.gateway.schema import SCHEMA_POLICIES, GatewayMode, SchemaDocument, select_mode
from healthgate.registry.aggregator import Aggregator
from healthgate.registry.models import AvailabilitySnapshot
from healthgate.registry.registry import ServiceRegistry

if TYPE_CHECKING:
    import httpx

    from healthgate.config.models import GatewayConfig

logger = logging.getLogger(__name__)


class GatewayState(str, Enum):
    STARTING = "starting"
    PROBING_INITIAL = "probing_initial"
    READY = "ready"
    REPROBING = "reprobing"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


_SERVING = (GatewayState.READY, GatewayState.REPROBING)


class Composer:
    """Serves availability snapshots and forwards authorized calls downstream."""

    def __init__(
        self,
        registry: ServiceRegistry,
        aggregator: Aggregator,
        forwarder: Forwarder,
        *,
        name: str = "healthgate",
        schema_policy: str = "local",
        reprobe_interval: float = 0.0,
        drain_timeout: float = 10.0,
        emitter: Optional[EventEmitter] = None,
    ) -> None:
        if schema_policy not in SCHEMA_POLICIES:
            raise ValueError(f"Unknown schema policy: {schema_policy!r}")
        self.name = name
        self._registry = registry
        self._aggregator = aggregator
        self._forwarder = forwarder
        self._schema_policy = schema_policy
        self._reprobe_interval = reprobe_interval
        self._drain_timeout = drain_timeout
        self._emitter = emitter

        self._state = GatewayState.STARTING
        self._snapshot: Optional[AvailabilitySnapshot] = None
        self._mode = select_mode(None, schema_policy)
        self._reprobe_lock = asyncio.Lock()
        self._reprobe_task: Optional[asyncio.Task[None]] = None
        self._in_flight = 0
        self._drained = asyncio.Event()
        self._drained.set()

    @classmethod
    def from_config(
        cls,
        config: GatewayConfig,
        *,
        emitter: Optional[EventEmitter] = None,
        probe_transport: Optional[httpx.AsyncBaseTransport] = None,
        forward_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> Composer:
        """Build a composer from configuration. Raises RegistryConfigError."""
        registry = ServiceRegistry.from_config(config)
        aggregator = Aggregator(
            timeout_ms=config.probe.timeout_ms,
            cycle_overhead_ms=config.probe.cycle_overhead_ms,
            transport=probe_transport,
        )
        forwarder = Forwarder(timeout=config.forwarding.timeout, transport=forward_transport)
        return cls(
            registry,
            aggregator,
            forwarder,
            name=config.gateway.name,
            schema_policy=config.schema_policy,
            reprobe_interval=config.probe.reprobe_interval,
            drain_timeout=config.forwarding.drain_timeout,
            emitter=emitter,
        )

    # ─── read side ───

    @property
    def state(self) -> GatewayState:
        return self._state

    @property
    def registry(self) -> ServiceRegistry:
        return self._registry

    @property
    def snapshot(self) -> Optional[AvailabilitySnapshot]:
        return self._snapshot

    @property
    def mode(self) -> GatewayMode:
        return self._mode

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def _current(self) -> AvailabilitySnapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise GatewayUnavailableError("Gateway has not completed its initial probe")
        return snapshot

    def get_available_services(self) -> list[dict[str, Any]]:
        """Services from the cached snapshot, in registry order. Never probes."""
        return [r.to_dict() for r in self._current().results]

    def service_status(self, name: str) -> dict[str, Any]:
        result = self._current().get(name)
        if result is None:
            raise UnknownServiceError(name)
        return result.to_dict()

    def summary(self) -> dict[str, Any]:
        return {
            **self._current().summary(),
            "mode": self._mode.value,
            "state": self._state.value,
        }

    def schema_document(self) -> SchemaDocument:
        return SchemaDocument.for_snapshot(self._mode, self._snapshot)

    def health_check(self) -> dict[str, str]:
        """The gateway's own liveness, independent of downstream services."""
        return {
            "status": "healthy",
            "service": self.name,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    # ─── lifecycle ───

    async def start(self) -> AvailabilitySnapshot:
        """Run the initial probe cycle, then begin serving."""
        if self._state is not GatewayState.STARTING:
            raise RuntimeError(f"Cannot start gateway in state {self._state.value}")
        logger.info("Gateway %s starting with %d service(s)", self.name, len(self._registry))
        self._state = GatewayState.PROBING_INITIAL
        snapshot = await self._aggregator.run(self._registry)
        await self._publish(snapshot)
        self._state = GatewayState.READY
        if self._reprobe_interval > 0:
            self._reprobe_task = asyncio.create_task(self._reprobe_loop(), name="healthgate-reprobe")
        logger.info("Gateway %s ready in %s mode", self.name, self._mode.value)
        return snapshot

    async def reprobe(self) -> AvailabilitySnapshot:
        """Run a new probe cycle while the cached snapshot keeps being served."""
        if self._state not in _SERVING:
            raise GatewayUnavailableError(f"Cannot re-probe while {self._state.value}")
        async with self._reprobe_lock:
            if self._state is not GatewayState.READY:
                raise GatewayUnavailableError(f"Cannot re-probe while {self._state.value}")
            self._state = GatewayState.REPROBING
            try:
                snapshot = await self._aggregator.run(self._registry)
                await self._publish(snapshot)
            finally:
                if self._state is GatewayState.REPROBING:
                    self._state = GatewayState.READY
        return snapshot

    async def _reprobe_loop(self) -> None:
        while True:
            await asyncio.sleep(self._reprobe_interval)
            try:
                await self.reprobe()
            except GatewayUnavailableError:
                return
            except Exception:
                logger.exception("Background re-probe failed")

    async def shutdown(self) -> None:
        """Stop accepting forwards, drain in-flight ones, release clients."""
        if self._state in (GatewayState.SHUTTING_DOWN, GatewayState.STOPPED):
            return
        logger.info("Gateway %s shutting down (%d forward(s) in flight)", self.name, self._in_flight)
        self._state = GatewayState.SHUTTING_DOWN
        if self._reprobe_task is not None:
            self._reprobe_task.cancel()
            await asyncio.gather(self._reprobe_task, return_exceptions=True)
            self._reprobe_task = None
        try:
            await asyncio.wait_for(self._drained.wait(), timeout=self._drain_timeout)
        except TimeoutError:
            logger.warning(
                "Drain timeout after %.1fs; %d forward(s) still in flight",
                self._drain_timeout,
                self._in_flight,
            )
        await self._forwarder.aclose()
        self._state = GatewayState.STOPPED
        logger.info("Gateway %s stopped", self.name)

    async def _publish(self, snapshot: AvailabilitySnapshot) -> None:
        previous = self._snapshot
        # Single-writer publish; snapshot and mode change together.
        self._snapshot = snapshot
        self._mode = select_mode(snapshot, self._schema_policy)

        await self._emit("snapshot.published", {**snapshot.summary(), "mode": self._mode.value})
        for result in snapshot.results:
            before = previous.get(result.name) if previous is not None else None
            if before is None:
                changed = not result.available
            else:
                changed = before.available != result.available
            if changed:
                event_type = "service.up" if result.available else "service.down"
                logger.info("Service %s is %s", result.name, result.status)
                await self._emit(
                    event_type,
                    {"service": result.name, "url": result.service.base_url, "error": result.error},
                )

    async def _emit(self, event_type: str, data: dict[str, Any]) -> None:
        if self._emitter is not None:
            await self._emitter.emit(GatewayEvent(event_type=event_type, data=data))

    # ─── forwarding ───

    async def forward(
        self,
        service_name: str,
        path: str = "",
        *,
        method: str = "GET",
        authorization: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[QueryParams] = None,
        content: Optional[bytes] = None,
    ) -> ForwardedResponse:
        """Forward a call to *service_name*, passing *authorization* through unchanged."""
        if self._state not in _SERVING:
            raise GatewayUnavailableError(f"Gateway is {self._state.value}; not accepting calls")
        service = self._registry.get(service_name)
        if service is None:
            raise UnknownServiceError(service_name)

        self._in_flight += 1
        self._drained.clear()
        try:
            return await self._forwarder.send(
                service,
                path,
                method=method,
                authorization=authorization,
                headers=headers,
                params=params,
                content=content,
            )
        except DownstreamForwardError as exc:
            await self._emit(
                "forward.failed",
                {"service": exc.service, "url": exc.url, "status": exc.status_code},
            )
            raise
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._drained.set()
