from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.apps.api.deps import Principal, get_db, get_principal
from querybridge.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from querybridge.apps.api.response import SuccessEnvelope, success_response
from querybridge.services.activity import list_activity


router = APIRouter(prefix="/activity", tags=["activity"], responses=DEFAULT_ERROR_RESPONSES)


class ActivityResponse(BaseModel):
    id: int
    user_id: str | None
    activity_type: str
    activity_details: str | None
    metadata: dict[str, Any]
    activity_date: str


@router.get("", response_model=SuccessEnvelope[list[ActivityResponse]])
async def recent_activity(
    request: Request,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    activity_type: str | None = Query(default=None),
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        entries = await list_activity(
            db, org_id=principal.org_id, limit=limit, offset=offset, activity_type=activity_type
        )
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while listing activity") from exc
    data = [
        ActivityResponse(
            id=entry.id,
            user_id=entry.user_id,
            activity_type=entry.activity_type,
            activity_details=entry.activity_details,
            metadata=entry.metadata_json or {},
            activity_date=entry.activity_date.isoformat(),
        )
        for entry in entries
    ]
    return success_response(request=request, data=data)
