from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.apps.api.deps import Principal, get_aggregator, get_db, get_principal
from querybridge.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from querybridge.apps.api.response import SuccessEnvelope, success_response
from querybridge.services.performance import PerformanceAggregator


router = APIRouter(prefix="/stats", tags=["stats"], responses=DEFAULT_ERROR_RESPONSES)


class DailyPerformance(BaseModel):
    date: str
    total_queries: int
    successful_queries: int
    failed_queries: int
    avg_execution_time: float


class PerformanceSummary(BaseModel):
    days: int
    total_queries: int
    successful_queries: int
    failed_queries: int
    success_rate: float
    # Weighted by each day's query count, in seconds.
    avg_execution_time: float
    daily: list[DailyPerformance]


@router.get("/performance", response_model=SuccessEnvelope[PerformanceSummary])
async def performance_stats(
    request: Request,
    days: int = Query(default=7, ge=1, le=366),
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    aggregator: PerformanceAggregator = Depends(get_aggregator),
) -> dict:
    try:
        rows = await aggregator.list_daily(db, principal.org_id, days)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Database error while reading stats") from exc
    daily = [
        DailyPerformance(
            date=row.date_period.isoformat(),
            total_queries=row.total_queries,
            successful_queries=row.successful_queries,
            failed_queries=row.failed_queries,
            avg_execution_time=round(row.avg_execution_time, 4),
        )
        for row in rows
    ]
    total = sum(item.total_queries for item in daily)
    successful = sum(item.successful_queries for item in daily)
    weighted = sum(row.avg_execution_time * row.total_queries for row in rows)
    summary = PerformanceSummary(
        days=days,
        total_queries=total,
        successful_queries=successful,
        failed_queries=sum(item.failed_queries for item in daily),
        success_rate=round(successful / total, 4) if total else 0.0,
        avg_execution_time=round(weighted / total, 4) if total else 0.0,
        daily=daily,
    )
    return success_response(request=request, data=summary)
