from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import re
import time
from typing import Any, Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.core.config import get_settings
from querybridge.core.errors import (
    ExternalConnectionError,
    ExternalQueryError,
    GenericExecutionError,
    OrganizationNotFoundError,
    TargetObjectMissing,
)
from querybridge.domain.models import Organization
from querybridge.persistence.db import Database
from querybridge.persistence.repos import queries as queries_repo
from querybridge.persistence.repos.organizations import get_organization
from querybridge.providers.adapters.base import RawResult
from querybridge.providers.adapters.config import EngineType, describe_target, parse_connection_config
from querybridge.providers.adapters.router import AdapterRouter
from querybridge.providers.adapters.sqlalchemy_base import driver_message, run_statement
from querybridge.services.activity import (
    ACTIVITY_EXECUTE_QUERY,
    ACTIVITY_FAILED_QUERY,
    ACTIVITY_QUERY,
    record_activity,
)
from querybridge.services.formatter import format_rows
from querybridge.services.optimizer import DialectOptimizer, SqlOptimizer, optimize_best_effort
from querybridge.services.performance import PerformanceAggregator
from querybridge.services.validator import validate_statement


logger = logging.getLogger(__name__)

STATUS_SUCCESS = "SUCCESS"
STATUS_FAILED = "FAILED"
DEFAULT_QUERY_TEXT = "Re-executed query"

# Driver messages that mean the referenced table/view is gone (schema drift).
_MISSING_OBJECT_PATTERNS = [
    re.compile(r"relation .* does not exist", re.IGNORECASE),
    re.compile(r"does not exist", re.IGNORECASE),
    re.compile(r"doesn't exist", re.IGNORECASE),
    re.compile(r"ORA-00942"),
    re.compile(r"Invalid object name", re.IGNORECASE),
    re.compile(r"no such table", re.IGNORECASE),
]

_DIALECT_ENGINES = {
    "postgresql": EngineType.POSTGRES,
    "mysql": EngineType.MYSQL,
    "oracle": EngineType.ORACLE,
    "mssql": EngineType.MSSQL,
}


def is_missing_object_error(message: str) -> bool:
    return any(pattern.search(message or "") for pattern in _MISSING_OBJECT_PATTERNS)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ExecutionResult:
    columns: list[str]
    rows: list[list[Any]]
    execution_time_ms: float
    row_count: int
    query_id: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "columns": self.columns,
            "rows": self.rows,
            "execution_time_ms": self.execution_time_ms,
            "row_count": self.row_count,
            "query_id": self.query_id,
        }


@dataclass(frozen=True)
class _Target:
    engine_type: EngineType | None
    label: str
    run: Callable[[str], Awaitable[RawResult]]


class QueryExecutionService:
    """Validates, runs, times and records one read-only statement for an org.

    Statements go to the org's configured external database, or to the
    application's own datastore when the org has none. Every statement that
    reaches a target produces exactly one performance sample.
    """

    def __init__(
        self,
        database: Database,
        *,
        router: AdapterRouter | None = None,
        optimizer: SqlOptimizer | None = None,
        aggregator: PerformanceAggregator | None = None,
        timeout_s: float | None = None,
        time_provider: Callable[[], datetime] | None = None,
    ) -> None:
        settings = get_settings()
        self._database = database
        self._router = router or AdapterRouter()
        self._optimizer = optimizer or DialectOptimizer()
        self._aggregator = aggregator or PerformanceAggregator(database)
        self._timeout_s = float(timeout_s if timeout_s is not None else settings.query_timeout_s)
        self._max_error_chars = settings.error_message_max_chars
        self._time_provider = time_provider or _utc_now

    def _resolve_target(self, org: Organization) -> _Target:
        if org.database_type and org.database_info_json:
            config = parse_connection_config(org.database_type, org.database_info_json)
            adapter = self._router.adapter_for(config)

            async def _run_external(sql: str) -> RawResult:
                return await adapter.execute(config, sql)

            return _Target(
                engine_type=EngineType(config.engine_type),
                label=describe_target(config),
                run=_run_external,
            )

        async def _run_default(sql: str) -> RawResult:
            async with self._database.engine.connect() as conn:
                try:
                    return await run_statement(conn, sql)
                except SQLAlchemyError as exc:
                    raise ExternalQueryError(driver_message(exc)) from exc

        return _Target(
            engine_type=_DIALECT_ENGINES.get(self._database.dialect_name),
            label="default",
            run=_run_default,
        )

    async def execute(
        self,
        session: AsyncSession,
        org_id: str,
        user_id: str,
        sql: str,
        related_query_id: int | None = None,
        query_text: str | None = None,
    ) -> ExecutionResult:
        org = await get_organization(session, org_id)
        if org is None:
            raise OrganizationNotFoundError(f"organization not found: {org_id}")
        target = self._resolve_target(org)
        # Do not hold a metadata transaction open while the statement runs.
        await session.commit()

        # Rejections leave no trace: no adapter call, no record, no sample.
        validated = validate_statement(sql)
        final_sql = optimize_best_effort(self._optimizer, validated.sql, target.engine_type)

        start = time.perf_counter()
        try:
            raw = await asyncio.wait_for(target.run(final_sql), timeout=self._timeout_s)
        except asyncio.TimeoutError as exc:
            message = f"query exceeded {self._timeout_s:g}s timeout"
            await self._record_failure(session, org_id, user_id, final_sql, message, related_query_id, query_text)
            raise GenericExecutionError("Query execution failed", detail=message) from exc
        except ExternalConnectionError as exc:
            await self._record_failure(session, org_id, user_id, final_sql, str(exc), related_query_id, query_text)
            raise
        except ExternalQueryError as exc:
            message = str(exc)
            await self._record_failure(session, org_id, user_id, final_sql, message, related_query_id, query_text)
            if is_missing_object_error(message):
                raise TargetObjectMissing(
                    "Table or view does not exist. Re-sync the database schema and try again."
                ) from exc
            raise GenericExecutionError("Query execution failed", detail=message) from exc
        elapsed_s = time.perf_counter() - start

        formatted = format_rows(raw.rows, raw.columns)
        execution_time_ms = round(elapsed_s * 1000.0, 3)
        query_id = await self._record_success(
            session,
            org_id,
            user_id,
            final_sql,
            execution_time_ms=execution_time_ms,
            rows_returned=len(formatted.rows),
            related_query_id=related_query_id,
            query_text=query_text,
        )
        await self._aggregator.record_sample(org_id, True, elapsed_s)
        logger.info(
            "query_executed org_id=%s target=%s rows=%s elapsed_ms=%.1f",
            org_id,
            target.label,
            len(formatted.rows),
            execution_time_ms,
        )
        return ExecutionResult(
            columns=formatted.columns,
            rows=formatted.rows,
            execution_time_ms=execution_time_ms,
            row_count=len(formatted.rows),
            query_id=query_id,
        )

    async def _record_success(
        self,
        session: AsyncSession,
        org_id: str,
        user_id: str,
        sql: str,
        *,
        execution_time_ms: float,
        rows_returned: int,
        related_query_id: int | None,
        query_text: str | None,
    ) -> int | None:
        now = self._time_provider()
        try:
            record = None
            if related_query_id is not None:
                record = await queries_repo.get_query_for_org(session, org_id, related_query_id)
                if record is None:
                    logger.warning(
                        "related_query_missing org_id=%s query_id=%s", org_id, related_query_id
                    )
            if record is not None:
                queries_repo.mark_result(
                    record,
                    status=STATUS_SUCCESS,
                    executed_at=now,
                    execution_time_ms=execution_time_ms,
                    rows_returned=rows_returned,
                )
                activity_type = ACTIVITY_EXECUTE_QUERY
                details = f"Re-executed query ID: {record.id}"
            else:
                record = await queries_repo.create_query_record(
                    session,
                    org_id=org_id,
                    user_id=user_id,
                    query_text=query_text or DEFAULT_QUERY_TEXT,
                    sql=sql,
                    status=STATUS_SUCCESS,
                    executed_at=now,
                    execution_time_ms=execution_time_ms,
                    rows_returned=rows_returned,
                )
                activity_type = ACTIVITY_QUERY
                details = f"Executed query ID: {record.id}"
            query_id = record.id
            await session.commit()
        except SQLAlchemyError as exc:
            # The rows were already fetched; bookkeeping failures must not discard them.
            await session.rollback()
            logger.warning("query_record_write_failed org_id=%s", org_id, exc_info=exc)
            return related_query_id
        await record_activity(
            database=self._database,
            activity_type=activity_type,
            org_id=org_id,
            user_id=user_id,
            details=details,
            metadata={"query_id": query_id, "rows_returned": rows_returned, "execution_time_ms": execution_time_ms},
            occurred_at=now,
        )
        return query_id

    async def _record_failure(
        self,
        session: AsyncSession,
        org_id: str,
        user_id: str,
        sql: str,
        message: str,
        related_query_id: int | None,
        query_text: str | None,
    ) -> None:
        now = self._time_provider()
        error_message = (message or "")[: self._max_error_chars]
        logger.info("query_failed org_id=%s error=%s", org_id, error_message)
        query_id: int | None = None
        try:
            record = None
            if related_query_id is not None:
                record = await queries_repo.get_query_for_org(session, org_id, related_query_id)
            if record is not None:
                queries_repo.mark_result(
                    record,
                    status=STATUS_FAILED,
                    executed_at=now,
                    execution_time_ms=0.0,
                    rows_returned=0,
                    error_message=error_message,
                )
            else:
                record = await queries_repo.create_query_record(
                    session,
                    org_id=org_id,
                    user_id=user_id,
                    query_text=query_text or DEFAULT_QUERY_TEXT,
                    sql=sql,
                    status=STATUS_FAILED,
                    executed_at=now,
                    execution_time_ms=0.0,
                    rows_returned=0,
                    error_message=error_message,
                )
            query_id = record.id
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.warning("query_record_write_failed org_id=%s", org_id, exc_info=exc)
        await record_activity(
            database=self._database,
            activity_type=ACTIVITY_FAILED_QUERY,
            org_id=org_id,
            user_id=user_id,
            details=f"Failed query ID: {query_id}" if query_id is not None else "Failed query",
            metadata={"query_id": query_id, "error": error_message},
            occurred_at=now,
        )
        await self._aggregator.record_sample(org_id, False, 0.0)
