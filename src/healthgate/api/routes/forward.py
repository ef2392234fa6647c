"""Forwarding endpoint: relays calls to a registered downstream service."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from healthgate.api.auth import caller_authorization

router = APIRouter(tags=["forward"])

_FORWARDED_REQUEST_HEADERS = ("accept", "content-type")


@router.api_route(
    "/forward/{service}/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
)
async def forward(
    request: Request,
    service: str,
    path: str,
    authorization: Optional[str] = Depends(caller_authorization),
) -> Response:
    composer = request.app.state.composer
    headers = {
        name: request.headers[name]
        for name in _FORWARDED_REQUEST_HEADERS
        if name in request.headers
    }
    body = await request.body()
    result = await composer.forward(
        service,
        path,
        method=request.method,
        authorization=authorization,
        headers=headers,
        params=request.query_params.multi_items(),
        content=body or None,
    )
    return Response(
        content=result.content,
        status_code=result.status_code,
        media_type=result.media_type,
    )
