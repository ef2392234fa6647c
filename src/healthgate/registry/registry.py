"""Service registry: the static, ordered set of known services."""

from __future__ import annotations

from typing import Iterable, Iterator, List, Optional

from healthgate.config.models import GatewayConfig, ServiceEntry, validate_service_url
from healthgate.errors import RegistryConfigError
from healthgate.registry.models import ServiceDescriptor

# Path segments under /api/services that a service name would collide with.
RESERVED_NAMES = frozenset({"summary", "refresh"})


class ServiceRegistry:
    """Ordered, immutable collection of service descriptors.

    Construction validates every entry; an empty registry, a duplicate or
    reserved name, or a malformed URL raises RegistryConfigError naming the
    offending entry.
    """

    def __init__(self, descriptors: Iterable[ServiceDescriptor], *, allow_empty: bool = False) -> None:
        items = tuple(descriptors)
        if not items and not allow_empty:
            raise RegistryConfigError("Service registry is empty: configure at least one service")
        seen: set[str] = set()
        for index, desc in enumerate(items):
            if not desc.name:
                raise RegistryConfigError(f"Service entry {index} has no name")
            if desc.name in RESERVED_NAMES:
                raise RegistryConfigError(f"Service name '{desc.name}' is reserved by the gateway API")
            if desc.name in seen:
                raise RegistryConfigError(f"Service '{desc.name}' is registered more than once")
            try:
                validate_service_url(desc.base_url)
            except ValueError as exc:
                raise RegistryConfigError(f"Service '{desc.name}': {exc}") from exc
            seen.add(desc.name)
        self._descriptors = items
        self._by_name = {d.name: d for d in items}

    @classmethod
    def from_entries(cls, entries: Iterable[ServiceEntry], *, allow_empty: bool = False) -> ServiceRegistry:
        return cls(
            (
                ServiceDescriptor(
                    name=e.name,
                    base_url=e.url,
                    health_path=e.health_endpoint,
                    description=e.description,
                )
                for e in entries
            ),
            allow_empty=allow_empty,
        )

    @classmethod
    def from_config(cls, config: GatewayConfig) -> ServiceRegistry:
        return cls.from_entries(config.services)

    @property
    def names(self) -> List[str]:
        return [d.name for d in self._descriptors]

    def get(self, name: str) -> Optional[ServiceDescriptor]:
        return self._by_name.get(name)

    def __iter__(self) -> Iterator[ServiceDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name
