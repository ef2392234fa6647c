"""Tests for the gateway composer lifecycle, reads and forwarding."""

from __future__ import annotations

import asyncio
import time

import httpx
import pytest

from healthgate.errors import DownstreamForwardError, GatewayUnavailableError, UnknownServiceError
from healthgate.events.emitter import EventEmitter
from healthgate.events.log import EventLog
from healthgate.gateway.composer import Composer, GatewayState
from healthgate.gateway.forwarding import Forwarder
from healthgate.gateway.schema import GatewayMode
from healthgate.registry.aggregator import Aggregator
from healthgate.registry.models import ServiceDescriptor
from healthgate.registry.registry import ServiceRegistry

REGISTRY = ServiceRegistry(
    [
        ServiceDescriptor(name="a", base_url="http://x"),
        ServiceDescriptor(name="b", base_url="http://y"),
    ]
)


def _ok_transport() -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(200, json={"ok": True}))


def _composer(probe_func, transport=None, **kwargs) -> Composer:
    return Composer(
        REGISTRY,
        Aggregator(timeout_ms=200, probe_func=probe_func),
        Forwarder(transport=transport or _ok_transport()),
        **kwargs,
    )


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_probes_before_ready(self, fake_probe):
        composer = _composer(fake_probe)
        assert composer.state is GatewayState.STARTING
        assert composer.snapshot is None

        snapshot = await composer.start()
        assert composer.state is GatewayState.READY
        assert composer.snapshot is snapshot
        assert snapshot.total_count == 2
        await composer.shutdown()

    @pytest.mark.asyncio
    async def test_probing_initial_state_visible(self, fake_probe):
        fake_probe.gate = asyncio.Event()
        composer = _composer(fake_probe)
        task = asyncio.create_task(composer.start())
        await asyncio.sleep(0.01)
        assert composer.state is GatewayState.PROBING_INITIAL
        with pytest.raises(GatewayUnavailableError):
            composer.get_available_services()
        fake_probe.gate.set()
        await task
        assert composer.state is GatewayState.READY
        await composer.shutdown()

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, fake_probe):
        composer = _composer(fake_probe)
        await composer.start()
        with pytest.raises(RuntimeError):
            await composer.start()
        await composer.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_reaches_stopped(self, fake_probe):
        composer = _composer(fake_probe)
        await composer.start()
        await composer.shutdown()
        assert composer.state is GatewayState.STOPPED
        await composer.shutdown()  # idempotent
        assert composer.state is GatewayState.STOPPED

    @pytest.mark.asyncio
    async def test_background_reprobe(self, fake_probe):
        composer = _composer(fake_probe, reprobe_interval=0.05)
        await composer.start()
        first = composer.snapshot
        await asyncio.sleep(0.2)
        assert len(fake_probe.calls) >= 4
        assert composer.snapshot is not first
        await composer.shutdown()
        assert composer.state is GatewayState.STOPPED


class TestReads:
    @pytest.mark.asyncio
    async def test_get_available_services_shape(self, fake_probe):
        fake_probe.outcomes = {"b": False}
        composer = _composer(fake_probe)
        await composer.start()
        services = composer.get_available_services()
        assert [
            {k: s[k] for k in ("name", "url", "status", "available")} for s in services
        ] == [
            {"name": "a", "url": "http://x", "status": "up", "available": True},
            {"name": "b", "url": "http://y", "status": "down", "available": False},
        ]
        await composer.shutdown()

    @pytest.mark.asyncio
    async def test_reads_do_not_wait_for_reprobe(self, fake_probe):
        composer = _composer(fake_probe)
        await composer.start()
        before = composer.snapshot

        fake_probe.gate = asyncio.Event()
        fake_probe.outcomes = {"a": False}
        reprobe = asyncio.create_task(composer.reprobe())
        await asyncio.sleep(0.01)
        assert composer.state is GatewayState.REPROBING

        start = time.monotonic()
        services = composer.get_available_services()
        assert time.monotonic() - start < 0.01
        assert services[0]["available"] is True  # still the cached snapshot
        assert composer.snapshot is before

        fake_probe.gate.set()
        after = await reprobe
        assert composer.snapshot is after
        assert composer.get_available_services()[0]["available"] is False
        assert composer.state is GatewayState.READY
        await composer.shutdown()

    @pytest.mark.asyncio
    async def test_concurrent_reprobes_serialized(self, fake_probe):
        composer = _composer(fake_probe)
        await composer.start()
        first, second = await asyncio.gather(composer.reprobe(), composer.reprobe())
        assert first is not second
        assert composer.snapshot is second
        assert composer.state is GatewayState.READY
        await composer.shutdown()

    @pytest.mark.asyncio
    async def test_service_status_unknown(self, fake_probe):
        composer = _composer(fake_probe)
        await composer.start()
        assert composer.service_status("a")["status"] == "up"
        with pytest.raises(UnknownServiceError):
            composer.service_status("zzz")
        await composer.shutdown()

    @pytest.mark.asyncio
    async def test_health_check_independent_of_downstream(self, fake_probe):
        fake_probe.outcomes = {"a": False, "b": False}
        composer = _composer(fake_probe, name="core-gateway")
        await composer.start()
        health = composer.health_check()
        assert health["status"] == "healthy"
        assert health["service"] == "core-gateway"
        assert "T" in health["timestamp"]
        await composer.shutdown()

    @pytest.mark.asyncio
    async def test_summary(self, fake_probe):
        fake_probe.outcomes = {"a": False}
        composer = _composer(fake_probe)
        await composer.start()
        summary = composer.summary()
        assert summary["available_count"] == 1
        assert summary["total_count"] == 2
        assert summary["state"] == "ready"
        assert summary["mode"] == "local_fallback"
        await composer.shutdown()


class TestModeSelection:
    @pytest.mark.asyncio
    async def test_local_policy_always_local(self, fake_probe):
        composer = _composer(fake_probe, schema_policy="local")
        await composer.start()
        assert composer.mode is GatewayMode.LOCAL_FALLBACK
        assert composer.schema_document().sdl is not None
        await composer.shutdown()

    @pytest.mark.asyncio
    async def test_auto_policy_follows_snapshot(self, fake_probe):
        fake_probe.outcomes = {"a": False}
        composer = _composer(fake_probe, schema_policy="auto")
        await composer.start()
        assert composer.mode is GatewayMode.FEDERATED
        assert composer.schema_document().subgraphs == [{"name": "b", "url": "http://y"}]

        fake_probe.outcomes = {"a": False, "b": False}
        await composer.reprobe()
        assert composer.mode is GatewayMode.LOCAL_FALLBACK
        await composer.shutdown()

    def test_unknown_policy_rejected(self, fake_probe):
        with pytest.raises(ValueError):
            _composer(fake_probe, schema_policy="sometimes")


class TestEvents:
    @pytest.mark.asyncio
    async def test_transitions_emitted(self, fake_probe):
        log = EventLog()
        emitter = EventEmitter()
        emitter.add_listener(log)
        fake_probe.outcomes = {"b": False}
        composer = _composer(fake_probe, emitter=emitter)
        await composer.start()

        downs = await log.get_recent(event_type="service.down")
        assert [e.data["service"] for e in downs] == ["b"]

        fake_probe.outcomes = {}
        await composer.reprobe()
        ups = await log.get_recent(event_type="service.up")
        assert [e.data["service"] for e in ups] == ["b"]
        published = await log.get_recent(event_type="snapshot.published")
        assert len(published) == 2
        await composer.shutdown()


class TestForwarding:
    @pytest.mark.asyncio
    async def test_forward_passes_token(self, fake_probe):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"data": {}})

        composer = _composer(fake_probe, transport=httpx.MockTransport(handler))
        await composer.start()
        await composer.forward("a", "/graphql", method="POST", authorization="Bearer abc")
        await composer.forward("b", "/graphql", method="POST")
        await composer.shutdown()

        assert captured[0].headers["authorization"] == "Bearer abc"
        assert "authorization" not in captured[1].headers

    @pytest.mark.asyncio
    async def test_forward_unknown_service(self, fake_probe):
        composer = _composer(fake_probe)
        await composer.start()
        with pytest.raises(UnknownServiceError):
            await composer.forward("nope", "/")
        await composer.shutdown()

    @pytest.mark.asyncio
    async def test_forward_before_ready_rejected(self, fake_probe):
        composer = _composer(fake_probe)
        with pytest.raises(GatewayUnavailableError):
            await composer.forward("a", "/")

    @pytest.mark.asyncio
    async def test_forward_error_emits_event(self, fake_probe):
        log = EventLog()
        emitter = EventEmitter()
        emitter.add_listener(log)
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        composer = _composer(fake_probe, transport=transport, emitter=emitter)
        await composer.start()
        with pytest.raises(DownstreamForwardError):
            await composer.forward("a", "/graphql")
        failed = await log.get_recent(event_type="forward.failed")
        assert failed[0].data == {"service": "a", "url": "http://x/graphql", "status": 500}
        assert composer.in_flight == 0
        await composer.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_drains_in_flight(self, fake_probe):
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            await release.wait()
            return httpx.Response(200, text="late")

        composer = _composer(fake_probe, transport=httpx.MockTransport(handler))
        await composer.start()
        forward = asyncio.create_task(composer.forward("a", "/slow"))
        await asyncio.sleep(0.01)
        assert composer.in_flight == 1

        shutdown = asyncio.create_task(composer.shutdown())
        await asyncio.sleep(0.01)
        assert composer.state is GatewayState.SHUTTING_DOWN
        with pytest.raises(GatewayUnavailableError):
            await composer.forward("a", "/new")

        release.set()
        result = await forward
        await shutdown
        assert result.content == b"late"
        assert composer.state is GatewayState.STOPPED
