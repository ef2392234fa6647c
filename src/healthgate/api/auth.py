"""Request authentication helpers for FastAPI."""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request


async def require_api_key(request: Request) -> None:
    """FastAPI dependency that checks X-API-Key header on administrative endpoints.

    Auth is disabled when no key is configured.
    """
    config = request.app.state.config
    if not config.auth.api_key:
        return  # auth disabled
    key = request.headers.get("X-API-Key", "")
    if key != config.auth.api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


async def caller_authorization(request: Request) -> Optional[str]:
    """The caller's Authorization header, verbatim, or None.

    A missing header is not an error here; downstream services decide.
    """
    return request.headers.get("authorization") or None
