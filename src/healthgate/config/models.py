"""Pydantic models for healthgate configuration."""

from __future__ import annotations

from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator


def validate_service_url(url: str) -> str:
    """Return *url* if it is an absolute http(s) URL, else raise ValueError."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"malformed URL {url!r}: expected an absolute http(s) URL")
    return url


class ServiceEntry(BaseModel):
    """Configuration for a downstream service."""

    name: str = Field(min_length=1)
    url: str
    health_endpoint: str = "/health"
    description: str = ""

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return validate_service_url(value)

    @field_validator("health_endpoint")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else "/" + value


class ProbeSettings(BaseModel):
    """Liveness probe timing."""

    timeout_ms: int = Field(default=1000, gt=0)
    cycle_overhead_ms: int = Field(default=250, ge=0)
    reprobe_interval: float = Field(default=0.0, ge=0)  # seconds, 0 = disabled


class ForwardSettings(BaseModel):
    """Downstream forwarding configuration."""

    timeout: float = Field(default=30.0, gt=0)
    drain_timeout: float = Field(default=10.0, ge=0)


class GatewayIdentity(BaseModel):
    """Top-level gateway identity metadata."""

    name: str = "healthgate"
    version: str = "0.1.0"


class AuthConfig(BaseModel):
    """Authentication for administrative endpoints."""

    api_key: str = ""  # empty = auth disabled


class WebhookConfig(BaseModel):
    """Configuration for a single webhook endpoint."""

    url: str
    events: list[str] = Field(default_factory=lambda: ["service.down", "service.up"])
    secret: str = ""  # HMAC signing key, supports ${ENV_VAR}


class GatewayConfig(BaseModel):
    """Root configuration model for .healthgate.yaml."""

    gateway: GatewayIdentity = Field(default_factory=GatewayIdentity)
    probe: ProbeSettings = Field(default_factory=ProbeSettings)
    forwarding: ForwardSettings = Field(default_factory=ForwardSettings)
    services: list[ServiceEntry] = Field(default_factory=list)
    schema_policy: Literal["local", "auto"] = "local"
    auth: AuthConfig = Field(default_factory=AuthConfig)
    webhooks: list[WebhookConfig] = Field(default_factory=list)
    event_log_size: int = 100

    @field_validator("services", mode="before")
    @classmethod
    def _services_mapping(cls, value: Any) -> Any:
        # Accept ``{key: {url: ...}}`` as well as a list; the key becomes the name.
        if isinstance(value, dict):
            entries = []
            for key, entry in value.items():
                if isinstance(entry, str):
                    entry = {"url": entry}
                entries.append({"name": key, **(entry or {})})
            return entries
        return value

    @model_validator(mode="after")
    def _unique_names(self) -> GatewayConfig:
        seen: set[str] = set()
        for entry in self.services:
            if entry.name in seen:
                raise ValueError(f"duplicate service name {entry.name!r}")
            seen.add(entry.name)
        return self
