from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.domain.models import QueryPerformance


PERIOD_DAILY = "daily"

_UPSERT_DIALECTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


async def upsert_sample(
    session: AsyncSession,
    *,
    org_id: str,
    day: date,
    success: bool,
    execution_time_s: float,
    now: datetime,
) -> None:
    """Apply one sample to the (org, day) aggregate in a single statement.

    Counters and the running mean are computed from the row's current values
    inside the database, so concurrent callers cannot lose increments.
    """
    dialect = session.get_bind().dialect.name
    insert_fn = _UPSERT_DIALECTS.get(dialect)
    if insert_fn is None:
        await _locked_increment(
            session, org_id=org_id, day=day, success=success, execution_time_s=execution_time_s, now=now
        )
        return

    table = QueryPerformance.__table__
    stmt = insert_fn(table).values(
        org_id=org_id,
        date_period=day,
        period_type=PERIOD_DAILY,
        total_queries=1,
        successful_queries=1 if success else 0,
        failed_queries=0 if success else 1,
        avg_execution_time=float(execution_time_s),
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.org_id, table.c.date_period, table.c.period_type],
        set_={
            "total_queries": table.c.total_queries + 1,
            "successful_queries": table.c.successful_queries + (1 if success else 0),
            "failed_queries": table.c.failed_queries + (0 if success else 1),
            "avg_execution_time": (
                table.c.avg_execution_time * table.c.total_queries + float(execution_time_s)
            )
            / (table.c.total_queries + 1),
            "updated_at": now,
        },
    )
    await session.execute(stmt)


async def _locked_increment(
    session: AsyncSession,
    *,
    org_id: str,
    day: date,
    success: bool,
    execution_time_s: float,
    now: datetime,
) -> None:
    # Dialects without ON CONFLICT: lock the row, or insert it and retry once on a racing insert.
    for attempt in range(2):
        row = await _get_locked(session, org_id, day)
        if row is None:
            try:
                async with session.begin_nested():
                    session.add(
                        QueryPerformance(
                            org_id=org_id,
                            date_period=day,
                            period_type=PERIOD_DAILY,
                            total_queries=1,
                            successful_queries=1 if success else 0,
                            failed_queries=0 if success else 1,
                            avg_execution_time=float(execution_time_s),
                            created_at=now,
                            updated_at=now,
                        )
                    )
                return
            except IntegrityError:
                if attempt:
                    raise
                continue
        total = int(row.total_queries or 0)
        row.avg_execution_time = (float(row.avg_execution_time or 0.0) * total + float(execution_time_s)) / (
            total + 1
        )
        row.total_queries = total + 1
        if success:
            row.successful_queries = int(row.successful_queries or 0) + 1
        else:
            row.failed_queries = int(row.failed_queries or 0) + 1
        row.updated_at = now
        await session.flush()
        return


async def _get_locked(session: AsyncSession, org_id: str, day: date) -> QueryPerformance | None:
    result = await session.execute(
        select(QueryPerformance)
        .where(
            QueryPerformance.org_id == org_id,
            QueryPerformance.date_period == day,
            QueryPerformance.period_type == PERIOD_DAILY,
        )
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def list_daily(session: AsyncSession, *, org_id: str, since: date) -> list[QueryPerformance]:
    result = await session.execute(
        select(QueryPerformance)
        .where(
            QueryPerformance.org_id == org_id,
            QueryPerformance.period_type == PERIOD_DAILY,
            QueryPerformance.date_period >= since,
        )
        .order_by(QueryPerformance.date_period)
    )
    return list(result.scalars().all())
