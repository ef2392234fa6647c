"""Gateway mode selection and the static local schema document."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from healthgate.registry.models import AvailabilitySnapshot


class GatewayMode(str, Enum):
    FEDERATED = "federated"
    LOCAL_FALLBACK = "local_fallback"


SCHEMA_POLICIES = ("local", "auto")

LOCAL_SCHEMA_SDL = """\
type Query {
  healthCheck: HealthStatus!
  availableServices: [ServiceStatus!]!
  properties: [Property!]!
  property(id: ID!): Property
  reports: [Report!]!
  report(id: ID!): Report
}

type HealthStatus {
  status: String!
  service: String!
  timestamp: String!
}

type ServiceStatus {
  name: String!
  url: String!
  status: String!
  available: Boolean!
}

type Property {
  id: ID!
  address: String!
  city: String
  state: String
  zipCode: String
  propertyType: String
  yearBuilt: Int
  squareFeet: Int
  reports: [Report!]!
}

type Report {
  id: ID!
  propertyId: ID!
  status: String!
  marketValue: Float
  comparables: [Comparable!]!
}

type Comparable {
  id: ID!
  reportId: ID!
  address: String!
  salePrice: Float
  squareFeet: Int
}
"""


def select_mode(snapshot: AvailabilitySnapshot | None, policy: str = "local") -> GatewayMode:
    """Pick the gateway mode for *snapshot* under *policy*.

    ``local`` always serves the local schema. ``auto`` federates when at
    least one downstream is up.
    """
    if policy not in SCHEMA_POLICIES:
        raise ValueError(f"Unknown schema policy: {policy!r}")
    if policy == "auto" and snapshot is not None and snapshot.available_count > 0:
        return GatewayMode.FEDERATED
    return GatewayMode.LOCAL_FALLBACK


@dataclass(frozen=True)
class SchemaDocument:
    """What the gateway serves for a given mode."""

    mode: GatewayMode
    sdl: str | None = None
    subgraphs: list[dict[str, str]] = field(default_factory=list)

    @classmethod
    def for_snapshot(cls, mode: GatewayMode, snapshot: AvailabilitySnapshot | None) -> SchemaDocument:
        if mode is GatewayMode.FEDERATED and snapshot is not None:
            return cls(
                mode=mode,
                subgraphs=[
                    {"name": s.name, "url": s.base_url} for s in snapshot.available_services()
                ],
            )
        return cls(mode=GatewayMode.LOCAL_FALLBACK, sdl=LOCAL_SCHEMA_SDL)

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode.value, "sdl": self.sdl, "subgraphs": self.subgraphs}
