from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.domain.models import QueryRecord


async def get_query_for_org(session: AsyncSession, org_id: str, query_id: int) -> QueryRecord | None:
    result = await session.execute(
        select(QueryRecord).where(QueryRecord.id == query_id, QueryRecord.org_id == org_id)
    )
    return result.scalar_one_or_none()


async def create_query_record(
    session: AsyncSession,
    *,
    org_id: str,
    user_id: str,
    query_text: str | None,
    sql: str,
    status: str,
    executed_at: datetime,
    execution_time_ms: float | None = None,
    rows_returned: int | None = None,
    error_message: str | None = None,
) -> QueryRecord:
    record = QueryRecord(
        org_id=org_id,
        user_id=user_id,
        query_text=query_text,
        sql_generated=sql,
        execution_status=status,
        error_message=error_message,
        execution_time_ms=execution_time_ms,
        rows_returned=rows_returned,
        execution_date=executed_at,
    )
    session.add(record)
    await session.flush()
    return record


def mark_result(
    record: QueryRecord,
    *,
    status: str,
    executed_at: datetime,
    execution_time_ms: float | None = None,
    rows_returned: int | None = None,
    error_message: str | None = None,
) -> QueryRecord:
    # Re-execution overwrites the outcome of the prior run in place.
    record.execution_status = status
    record.execution_date = executed_at
    record.execution_time_ms = execution_time_ms
    record.rows_returned = rows_returned
    record.error_message = error_message
    return record
