"""Shared fixtures for healthgate tests."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict

import httpx
import pytest
import yaml

from healthgate.config.models import GatewayConfig
from healthgate.registry.models import ProbeResult, ServiceDescriptor

SAMPLE_CONFIG: Dict[str, Any] = {
    "gateway": {"name": "core-gateway", "version": "0.1.0"},
    "probe": {"timeout_ms": 200, "cycle_overhead_ms": 100, "reprobe_interval": 0},
    "forwarding": {"timeout": 5, "drain_timeout": 1},
    "services": [
        {"name": "terrafusionsync", "url": "http://sync.local", "description": "Sync service"},
        {"name": "terraflow", "url": "http://flow.local"},
        {"name": "bcbslevy", "url": "http://levy.local", "health_endpoint": "/healthz"},
    ],
}


@pytest.fixture()
def sample_config() -> GatewayConfig:
    """Return a parsed GatewayConfig from sample data."""
    return GatewayConfig(**SAMPLE_CONFIG)


@pytest.fixture()
def sample_config_dict() -> Dict[str, Any]:
    """Return raw sample config dict."""
    return dict(SAMPLE_CONFIG)


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    """Write sample config to a temp .healthgate.yaml and return the path."""
    path = tmp_path / ".healthgate.yaml"
    with path.open("w") as fh:
        yaml.dump(SAMPLE_CONFIG, fh)
    return path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HEALTHGATE_SERVICES", raising=False)
    monkeypatch.delenv("HEALTHGATE_CONFIG", raising=False)


@pytest.fixture()
def host_transport() -> Callable[[Dict[str, Any]], httpx.MockTransport]:
    """Build a MockTransport whose behaviour is chosen by request host.

    Behaviours: an int status code, ``"hang"`` (never answers), ``"refuse"``
    (connection error), or ``(delay_seconds, status)``.
    """

    def factory(behaviours: Dict[str, Any]) -> httpx.MockTransport:
        async def handler(request: httpx.Request) -> httpx.Response:
            behaviour = behaviours[request.url.host]
            if behaviour == "hang":
                await asyncio.sleep(3600)
            if behaviour == "refuse":
                raise httpx.ConnectError("Connection refused", request=request)
            if isinstance(behaviour, tuple):
                delay, status = behaviour
                await asyncio.sleep(delay)
                return httpx.Response(status)
            return httpx.Response(behaviour, json={"status": "healthy"})

        return httpx.MockTransport(handler)

    return factory


class FakeProbe:
    """Probe stand-in with per-service outcomes, delays and an optional gate."""

    def __init__(self, outcomes: Dict[str, bool] | None = None, delays: Dict[str, float] | None = None) -> None:
        self.outcomes = dict(outcomes or {})
        self.delays = dict(delays or {})
        self.gate: asyncio.Event | None = None
        self.calls: list[str] = []

    async def __call__(
        self, desc: ServiceDescriptor, timeout_ms: int, client: httpx.AsyncClient | None = None
    ) -> ProbeResult:
        self.calls.append(desc.name)
        if self.gate is not None:
            await self.gate.wait()
        if desc.name in self.delays:
            await asyncio.sleep(self.delays[desc.name])
        return ProbeResult(service=desc, available=self.outcomes.get(desc.name, True))


@pytest.fixture()
def fake_probe() -> FakeProbe:
    return FakeProbe()
