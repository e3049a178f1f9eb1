from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from querybridge.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from querybridge.apps.api.response import SuccessEnvelope, success_response

router = APIRouter(tags=["health"], responses=DEFAULT_ERROR_RESPONSES)


class HealthResponse(BaseModel):
    status: str
    # Metadata-store pool counters; absent before the lifespan has created the engine.
    pool: dict[str, int | None] | None = None


@router.get("/health", response_model=SuccessEnvelope[HealthResponse])
async def health(request: Request) -> dict:
    database = getattr(request.app.state, "database", None)
    payload = HealthResponse(status="ok", pool=database.pool_stats() if database is not None else None)
    return success_response(request=request, data=payload)
