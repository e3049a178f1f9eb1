from __future__ import annotations

import asyncio
from typing import Any, Sequence

from querybridge.providers.adapters.base import ColumnSchema, RawResult, TableSchema
from querybridge.providers.adapters.config import EngineType
from querybridge.providers.adapters.router import AdapterRouter


def table(name: str, *columns: tuple[str, str]) -> TableSchema:
    return TableSchema(name=name, columns=tuple(ColumnSchema(name=col, type=kind) for col, kind in columns))


ORDERS = table("orders", ("id", "integer"), ("total", "numeric"))
CUSTOMERS = table("customers", ("id", "integer"), ("name", "text"))
INVOICES = table("invoices", ("id", "integer"), ("due_date", "date"))


class StubAdapter:
    """In-memory adapter that records every call for assertions."""

    def __init__(
        self,
        tables: Sequence[TableSchema] = (),
        *,
        result: RawResult | None = None,
        error: Exception | None = None,
        delay_s: float = 0.0,
    ) -> None:
        self.tables = list(tables)
        self.result = result or RawResult(columns=[], rows=[])
        self.error = error
        self.delay_s = delay_s
        self.test_calls = 0
        self.introspect_calls = 0
        self.executed: list[str] = []

    async def test_connection(self, config: Any) -> None:
        self.test_calls += 1
        if self.error is not None:
            raise self.error

    async def test_and_introspect(self, config: Any) -> list[TableSchema]:
        self.introspect_calls += 1
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return list(self.tables)

    async def execute(self, config: Any, sql: str) -> RawResult:
        self.executed.append(sql)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self.result


def router_for(adapter: StubAdapter) -> AdapterRouter:
    # Every engine resolves to the same stub so tests can pick any engine type.
    return AdapterRouter({engine: (lambda: adapter) for engine in EngineType})


class ScriptedDescriber:
    """Describer whose behavior is chosen per table: text, exception or a stall."""

    def __init__(
        self,
        *,
        failures: dict[str, Exception] | None = None,
        stalls: Sequence[str] = (),
        blanks: Sequence[str] = (),
    ) -> None:
        self._failures = failures or {}
        self._stalls = set(stalls)
        self._blanks = set(blanks)
        self.calls: list[str] = []

    async def describe(self, table_name: str, columns: Sequence[ColumnSchema]) -> str:
        self.calls.append(table_name)
        if table_name in self._stalls:
            await asyncio.sleep(60)
        if table_name in self._failures:
            raise self._failures[table_name]
        if table_name in self._blanks:
            return "   "
        return f"Generated description of {table_name}"

    async def aclose(self) -> None:
        return None
