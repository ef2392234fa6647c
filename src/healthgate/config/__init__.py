"""healthgate configuration system."""

from healthgate.config.loader import find_config_file, load_config, services_from_env
from healthgate.config.models import (
    AuthConfig,
    ForwardSettings,
    GatewayConfig,
    GatewayIdentity,
    ProbeSettings,
    ServiceEntry,
    WebhookConfig,
)

__all__ = [
    "AuthConfig",
    "ForwardSettings",
    "GatewayConfig",
    "GatewayIdentity",
    "ProbeSettings",
    "ServiceEntry",
    "WebhookConfig",
    "find_config_file",
    "load_config",
    "services_from_env",
]
