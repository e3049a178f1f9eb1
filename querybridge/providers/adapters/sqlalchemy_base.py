from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import Any, AsyncIterator, Iterable

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import DBAPIError, NoSuchModuleError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from querybridge.core.config import get_settings
from querybridge.core.errors import (
    DriverUnavailableError,
    ExternalConnectionError,
    ExternalQueryError,
    IntrospectionError,
)
from querybridge.providers.adapters.base import ColumnSchema, RawResult, TableSchema
from querybridge.providers.adapters.config import describe_target


logger = logging.getLogger(__name__)


def driver_message(exc: BaseException) -> str:
    # Prefer the DBAPI message over SQLAlchemy's wrapper text (which embeds the statement).
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


def unique_column_names(keys: Iterable[Any]) -> list[str]:
    """Suffix repeated labels (`id`, `id_2`, ...) so each result column keeps its own key."""
    seen: set[str] = set()
    names: list[str] = []
    for key in keys:
        base = str(key)
        name = base
        suffix = 2
        while name in seen:
            name = f"{base}_{suffix}"
            suffix += 1
        seen.add(name)
        names.append(name)
    return names


async def run_statement(conn: AsyncConnection, sql: str) -> RawResult:
    # Bypass bind-parameter parsing so literal colons and percent signs reach the driver untouched.
    result = await conn.exec_driver_sql(sql, execution_options={"no_parameters": True})
    if not result.returns_rows:
        return RawResult(columns=[], rows=[])
    columns = unique_column_names(result.keys())
    # Positional zip keeps every value when a join repeats a column label.
    rows = [dict(zip(columns, row)) for row in result.all()]
    return RawResult(columns=columns, rows=rows)


class SqlAlchemyAdapter:
    """Shared adapter flow over a per-call async SQLAlchemy engine.

    Subclasses describe the engine: the async driver URL, driver connect
    arguments, and the catalog statements used for introspection. Each public
    call opens exactly one connection on a NullPool engine and disposes the
    engine before returning.
    """

    engine_name = "generic"
    ping_sql = "SELECT 1"
    tables_sql = ""
    columns_sql = ""

    def __init__(self, *, connect_timeout_s: float | None = None) -> None:
        settings = get_settings()
        self._connect_timeout_s = float(
            connect_timeout_s if connect_timeout_s is not None else settings.adapter_connect_timeout_s
        )

    def build_url(self, config: Any) -> URL:
        raise NotImplementedError

    def connect_args(self, config: Any) -> dict[str, Any]:
        return {}

    def table_params(self, config: Any) -> dict[str, Any]:
        return {}

    def column_params(self, config: Any, table_name: str) -> dict[str, Any]:
        return {"table_name": table_name}

    def _create_engine(self, config: Any) -> AsyncEngine:
        try:
            return create_async_engine(
                self.build_url(config),
                poolclass=NullPool,
                connect_args=self.connect_args(config),
            )
        except (NoSuchModuleError, ImportError) as exc:
            raise DriverUnavailableError(
                f"{self.engine_name} async driver is not installed"
            ) from exc

    @asynccontextmanager
    async def _connect(self, config: Any) -> AsyncIterator[AsyncConnection]:
        engine = self._create_engine(config)
        try:
            try:
                # Driver-level timeouts are not uniform across engines; bound the handshake here too.
                conn = await asyncio.wait_for(engine.connect(), timeout=self._connect_timeout_s + 1)
            except asyncio.TimeoutError as exc:
                raise ExternalConnectionError(
                    f"timed out connecting to {self.engine_name} after {self._connect_timeout_s:g}s"
                ) from exc
            except (SQLAlchemyError, OSError) as exc:
                raise ExternalConnectionError(
                    f"could not connect to {self.engine_name}: {driver_message(exc)}"
                ) from exc
            try:
                yield conn
            finally:
                # Read-only gateway: never commit, closing rolls back the implicit transaction.
                await conn.close()
        finally:
            await engine.dispose()

    async def test_connection(self, config: Any) -> None:
        async with self._connect(config) as conn:
            try:
                await conn.execute(text(self.ping_sql))
            except SQLAlchemyError as exc:
                raise ExternalConnectionError(
                    f"{self.engine_name} connection check failed: {driver_message(exc)}"
                ) from exc
        logger.info("adapter_connection_ok engine=%s target=%s", self.engine_name, describe_target(config))

    async def test_and_introspect(self, config: Any) -> list[TableSchema]:
        target = describe_target(config)
        try:
            async with self._connect(config) as conn:
                tables = await self._introspect(conn, config)
        except DriverUnavailableError:
            # No driver in this deployment: report no tables rather than inventing any.
            logger.warning("adapter_driver_unavailable engine=%s target=%s", self.engine_name, target)
            return []
        logger.info(
            "adapter_introspection_complete engine=%s target=%s tables=%s",
            self.engine_name,
            target,
            len(tables),
        )
        return tables

    async def _introspect(self, conn: AsyncConnection, config: Any) -> list[TableSchema]:
        try:
            result = await conn.execute(text(self.tables_sql), self.table_params(config))
            table_names = [str(row[0]) for row in result.all()]
        except SQLAlchemyError as exc:
            raise IntrospectionError(
                f"{self.engine_name} table listing failed: {driver_message(exc)}"
            ) from exc

        tables: list[TableSchema] = []
        for table_name in table_names:
            try:
                result = await conn.execute(text(self.columns_sql), self.column_params(config, table_name))
                columns = tuple(
                    ColumnSchema(name=str(row[0]), type=str(row[1] or "")) for row in result.all()
                )
            except SQLAlchemyError as exc:
                logger.warning(
                    "adapter_table_columns_failed engine=%s table=%s error=%s",
                    self.engine_name,
                    table_name,
                    driver_message(exc),
                )
                # A failed statement can poison the open transaction on some engines.
                await conn.rollback()
                continue
            if not columns:
                logger.info("adapter_table_skipped_no_columns engine=%s table=%s", self.engine_name, table_name)
                continue
            tables.append(TableSchema(name=table_name, columns=columns))
        return tables

    async def execute(self, config: Any, sql: str) -> RawResult:
        async with self._connect(config) as conn:
            try:
                return await run_statement(conn, sql)
            except SQLAlchemyError as exc:
                raise ExternalQueryError(driver_message(exc)) from exc
