from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import select

from querybridge.domain.models import QueryPerformance
from querybridge.services.performance import PerformanceAggregator


def _fixed_clock(moment: datetime):
    return lambda: moment


async def _rows(database, org_id: str) -> list[QueryPerformance]:
    async with database.session() as session:
        result = await session.execute(
            select(QueryPerformance).where(QueryPerformance.org_id == org_id).order_by(QueryPerformance.date_period)
        )
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_first_sample_creates_row_then_running_mean_updates(database, org) -> None:
    aggregator = PerformanceAggregator(database, time_provider=_fixed_clock(datetime(2024, 6, 1, 9, tzinfo=timezone.utc)))

    assert await aggregator.record_sample(org.id, True, 2.0) is True
    assert await aggregator.record_sample(org.id, True, 4.0) is True
    # Failures count toward the mean with zero time.
    assert await aggregator.record_sample(org.id, False, 99.0) is True

    rows = await _rows(database, org.id)
    assert len(rows) == 1
    row = rows[0]
    assert row.date_period == date(2024, 6, 1)
    assert row.total_queries == 3
    assert row.successful_queries == 2
    assert row.failed_queries == 1
    assert row.avg_execution_time == pytest.approx(2.0)


@pytest.mark.asyncio
async def test_concurrent_samples_lose_no_updates(database, org) -> None:
    aggregator = PerformanceAggregator(database, time_provider=_fixed_clock(datetime(2024, 6, 2, tzinfo=timezone.utc)))
    samples = [(index % 4 != 0, float(index)) for index in range(20)]

    results = await asyncio.gather(
        *(aggregator.record_sample(org.id, success, seconds) for success, seconds in samples)
    )

    assert all(results)
    row = (await _rows(database, org.id))[0]
    assert row.total_queries == 20
    assert row.successful_queries + row.failed_queries == 20
    assert row.failed_queries == 5
    expected_mean = sum(seconds for success, seconds in samples if success) / 20
    assert row.avg_execution_time == pytest.approx(expected_mean)


@pytest.mark.asyncio
async def test_samples_roll_over_by_utc_day(database, org) -> None:
    now = {"value": datetime(2024, 6, 3, 23, 59, tzinfo=timezone.utc)}
    aggregator = PerformanceAggregator(database, time_provider=lambda: now["value"])

    await aggregator.record_sample(org.id, True, 1.0)
    now["value"] = datetime(2024, 6, 4, 0, 1, tzinfo=timezone.utc)
    await aggregator.record_sample(org.id, True, 3.0)

    rows = await _rows(database, org.id)
    assert [(row.date_period, row.total_queries) for row in rows] == [
        (date(2024, 6, 3), 1),
        (date(2024, 6, 4), 1),
    ]

    async with database.session() as session:
        recent = await aggregator.list_daily(session, org.id, days=1)
    assert [row.date_period for row in recent] == [date(2024, 6, 4)]


@pytest.mark.asyncio
async def test_write_failure_is_reported_not_raised(database, org) -> None:
    aggregator = PerformanceAggregator(database)
    async with database.engine.begin() as conn:
        await conn.exec_driver_sql("DROP TABLE query_performance")

    assert await aggregator.record_sample(org.id, True, 1.0) is False
