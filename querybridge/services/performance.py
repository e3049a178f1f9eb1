from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
import logging
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.domain.models import QueryPerformance
from querybridge.persistence.db import Database
from querybridge.persistence.repos import performance as performance_repo


logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    # Use UTC for consistent daily period boundaries.
    return datetime.now(timezone.utc)


class PerformanceAggregator:
    def __init__(self, database: Database, *, time_provider: Callable[[], datetime] | None = None) -> None:
        self._database = database
        # Allow time injection for deterministic rollover tests.
        self._time_provider = time_provider or _utc_now

    def current_day(self) -> date:
        now = self._time_provider()
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return now.date()

    async def record_sample(self, org_id: str, success: bool, execution_time_s: float) -> bool:
        """Fold one execution sample into today's aggregate; returns False if the write failed."""
        now = self._time_provider()
        day = self.current_day()
        # Failed samples contribute zero time to the mean.
        sample_s = max(0.0, float(execution_time_s)) if success else 0.0
        async with self._database.session() as session:
            try:
                async with session.begin():
                    await performance_repo.upsert_sample(
                        session,
                        org_id=org_id,
                        day=day,
                        success=success,
                        execution_time_s=sample_s,
                        now=now,
                    )
            except SQLAlchemyError as exc:
                # Aggregates are advisory; the query outcome is already decided.
                logger.warning(
                    "performance_sample_write_failed org_id=%s success=%s", org_id, success, exc_info=exc
                )
                return False
        return True

    async def list_daily(self, session: AsyncSession, org_id: str, days: int = 7) -> list[QueryPerformance]:
        days = max(1, min(int(days), 366))
        since = self.current_day() - timedelta(days=days - 1)
        return await performance_repo.list_daily(session, org_id=org_id, since=since)
