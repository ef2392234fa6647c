"""Selected schema document endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(tags=["schema"])


@router.get("/schema")
async def get_schema(request: Request) -> dict[str, Any]:
    return request.app.state.composer.schema_document().to_dict()
