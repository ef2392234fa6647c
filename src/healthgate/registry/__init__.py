"""Service registry, liveness probes and snapshot aggregation."""

from healthgate.registry.aggregator import Aggregator
from healthgate.registry.models import AvailabilitySnapshot, ProbeResult, ServiceDescriptor
from healthgate.registry.probe import probe
from healthgate.registry.registry import ServiceRegistry

__all__ = [
    "Aggregator",
    "AvailabilitySnapshot",
    "ProbeResult",
    "ServiceDescriptor",
    "ServiceRegistry",
    "probe",
]
