"""Data models for service descriptors, probe results and snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Iterable, Optional


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ServiceDescriptor:
    """A registered downstream service."""

    name: str
    base_url: str
    health_path: str = "/health"
    description: str = ""

    @property
    def health_url(self) -> str:
        return self.base_url.rstrip("/") + self.health_path

    def url_for(self, path: str) -> str:
        """Join *path* onto the base URL with exactly one slash between."""
        return self.base_url.rstrip("/") + "/" + path.lstrip("/")


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one liveness probe. Superseded, never updated."""

    service: ServiceDescriptor
    available: bool
    checked_at: datetime = field(default_factory=_utcnow)
    status_code: Optional[int] = None
    latency_ms: float = 0.0
    error: Optional[str] = None
    failure: Optional[str] = None  # "timeout", "network", "status", "cancelled"

    @property
    def name(self) -> str:
        return self.service.name

    @property
    def status(self) -> str:
        return "up" if self.available else "down"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.service.name,
            "url": self.service.base_url,
            "status": self.status,
            "available": self.available,
            "status_code": self.status_code,
            "latency_ms": self.latency_ms,
            "checked_at": self.checked_at.isoformat(),
            "error": self.error,
        }


@dataclass(frozen=True)
class AvailabilitySnapshot:
    """Immutable point-in-time aggregate of probe results, in registry order.

    ``available_count`` and ``total_count`` are computed once at construction.
    """

    results: tuple[ProbeResult, ...]
    built_at: datetime = field(default_factory=_utcnow)
    available_count: int = field(init=False)
    total_count: int = field(init=False)

    def __post_init__(self) -> None:
        results = tuple(self.results)
        object.__setattr__(self, "results", results)
        object.__setattr__(self, "available_count", sum(1 for r in results if r.available))
        object.__setattr__(self, "total_count", len(results))

    @classmethod
    def build(cls, results: Iterable[ProbeResult]) -> AvailabilitySnapshot:
        return cls(results=tuple(results))

    @property
    def names(self) -> list[str]:
        return [r.service.name for r in self.results]

    @property
    def all_available(self) -> bool:
        return self.available_count == self.total_count

    def get(self, name: str) -> Optional[ProbeResult]:
        for result in self.results:
            if result.service.name == name:
                return result
        return None

    def available_services(self) -> list[ServiceDescriptor]:
        return [r.service for r in self.results if r.available]

    def summary(self) -> dict[str, Any]:
        return {
            "available_count": self.available_count,
            "total_count": self.total_count,
            "built_at": self.built_at.isoformat(),
        }
