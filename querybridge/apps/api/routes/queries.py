from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.apps.api.deps import Principal, get_db, get_execution_service, get_principal
from querybridge.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from querybridge.apps.api.response import SuccessEnvelope, success_response
from querybridge.services.execution import QueryExecutionService


router = APIRouter(prefix="/queries", tags=["queries"], responses=DEFAULT_ERROR_RESPONSES)


class ExecuteRequest(BaseModel):
    sql: str = Field(min_length=1)
    # Re-execution of a stored query updates that record in place.
    query_id: int | None = None
    query_text: str | None = None


class ExecuteResponse(BaseModel):
    columns: list[str]
    rows: list[list[Any]]
    execution_time_ms: float
    row_count: int
    query_id: int | None


@router.post("/execute", response_model=SuccessEnvelope[ExecuteResponse])
async def execute_query(
    request: Request,
    payload: ExecuteRequest,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    service: QueryExecutionService = Depends(get_execution_service),
) -> dict:
    result = await service.execute(
        db,
        principal.org_id,
        principal.user_id,
        payload.sql,
        related_query_id=payload.query_id,
        query_text=payload.query_text,
    )
    return success_response(request=request, data=ExecuteResponse(**result.to_dict()))
