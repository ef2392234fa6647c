"""Gateway composition: mode selection, forwarding and lifecycle."""

from healthgate.gateway.composer import Composer, GatewayState
from healthgate.gateway.forwarding import ForwardedResponse, Forwarder, build_headers
from healthgate.gateway.schema import GatewayMode, SchemaDocument, select_mode

__all__ = [
    "Composer",
    "ForwardedResponse",
    "Forwarder",
    "GatewayMode",
    "GatewayState",
    "SchemaDocument",
    "build_headers",
    "select_mode",
]
