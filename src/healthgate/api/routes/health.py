"""Service availability endpoints."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request

from healthgate.api.auth import require_api_key
from healthgate.gateway.composer import Composer

router = APIRouter(tags=["services"])


def _composer(request: Request) -> Composer:
    return request.app.state.composer


@router.get("/services")
async def list_services(request: Request) -> List[Dict[str, Any]]:
    return _composer(request).get_available_services()


@router.get("/services/summary")
async def services_summary(request: Request) -> Dict[str, Any]:
    return _composer(request).summary()


@router.post("/services/refresh", dependencies=[Depends(require_api_key)])
async def refresh_services(request: Request) -> Dict[str, Any]:
    composer = _composer(request)
    await composer.reprobe()
    return {**composer.summary(), "services": composer.get_available_services()}


@router.get("/services/{name}")
async def service_status(request: Request, name: str) -> Dict[str, Any]:
    return _composer(request).service_status(name)
