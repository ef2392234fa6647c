"""Error taxonomy for healthgate."""

from __future__ import annotations


class HealthgateError(Exception):
    """Base class for all healthgate errors."""


class ProbeError(HealthgateError):
    """A liveness probe failed. Never escapes the probe itself."""

    failure = "error"


class ProbeTimeout(ProbeError):
    """The probe did not complete within its bound."""

    failure = "timeout"


class ProbeNetworkError(ProbeError):
    """DNS, connection or TLS failure while probing."""

    failure = "network"


class RegistryConfigError(HealthgateError, ValueError):
    """The service registry is empty or malformed. Fatal at startup."""


class UnknownServiceError(HealthgateError, KeyError):
    """A request named a service that is not in the registry."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown service: {self.name}"


class GatewayUnavailableError(HealthgateError):
    """The gateway is not in a state that accepts forwarded calls."""


class DownstreamForwardError(HealthgateError):
    """A forwarded call failed or returned an error status."""

    def __init__(
        self,
        message: str,
        *,
        service: str,
        url: str,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.service = service
        self.url = url
        self.status_code = status_code
        self.detail = detail

    @property
    def response_status(self) -> int:
        """Status to return to the caller; 502 when the downstream gave none."""
        return self.status_code if self.status_code is not None else 502

    def to_dict(self) -> dict[str, object]:
        return {
            "error": {
                "type": "downstream_error",
                "message": str(self),
                "service": self.service,
                "url": self.url,
                "status": self.status_code,
                "detail": self.detail,
            }
        }
