"""Downstream forwarding with authorization pass-through."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

import httpx

from healthgate.errors import DownstreamForwardError
from healthgate.registry.models import ServiceDescriptor

logger = logging.getLogger(__name__)

# A mapping, or (key, value) pairs when a key repeats.
QueryParams = Union[Mapping[str, Any], Sequence[Tuple[str, str]]]

_HOP_BY_HOP = frozenset(
    {
        "authorization",
        "connection",
        "content-length",
        "host",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)


@dataclass
class ForwardedResponse:
    """A successful downstream response, ready to relay to the caller."""

    status_code: int
    content: bytes
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def media_type(self) -> Optional[str]:
        return self.headers.get("content-type")


def build_headers(
    headers: Optional[Mapping[str, str]] = None,
    authorization: Optional[str] = None,
) -> dict[str, str]:
    """Headers for a downstream call.

    The caller's Authorization value is attached unchanged when present; no
    Authorization header is added otherwise.
    """
    out: dict[str, str] = {}
    for key, value in (headers or {}).items():
        if key.lower() not in _HOP_BY_HOP:
            out[key] = value
    if authorization:
        out["Authorization"] = authorization
    return out


class Forwarder:
    """Issues downstream calls on behalf of inbound requests."""

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def send(
        self,
        service: ServiceDescriptor,
        path: str,
        *,
        method: str = "GET",
        authorization: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[QueryParams] = None,
        content: Optional[bytes] = None,
    ) -> ForwardedResponse:
        url = service.url_for(path)
        try:
            resp = await self._client.request(
                method.upper(),
                url,
                headers=build_headers(headers, authorization),
                params=params,
                content=content,
            )
        except httpx.HTTPError as exc:
            logger.error("Forward to %s failed: %s", url, exc)
            raise DownstreamForwardError(
                f"Request to service '{service.name}' failed: {type(exc).__name__}",
                service=service.name,
                url=url,
                detail=str(exc),
            ) from exc

        if resp.status_code >= 400:
            logger.warning("Forward to %s returned HTTP %d", url, resp.status_code)
            raise DownstreamForwardError(
                f"Service '{service.name}' returned HTTP {resp.status_code}",
                service=service.name,
                url=url,
                status_code=resp.status_code,
                detail=resp.text[:500] or None,
            )

        return ForwardedResponse(
            status_code=resp.status_code,
            content=resp.content,
            headers={
                k.lower(): v
                for k, v in resp.headers.items()
                if k.lower() not in _HOP_BY_HOP and k.lower() != "content-encoding"
            },
        )

    async def aclose(self) -> None:
        await self._client.aclose()
