from __future__ import annotations

from typing import Protocol, Sequence

from querybridge.providers.adapters.base import ColumnSchema


class TableDescriber(Protocol):
    async def describe(self, table_name: str, columns: Sequence[ColumnSchema]) -> str:
        ...

    async def aclose(self) -> None:
        ...


def fallback_description(table_name: str, columns: Sequence[ColumnSchema]) -> str:
    # Deterministic text used whenever the describer fails, times out or is disabled.
    return f"Table {table_name} with columns: {', '.join(column.name for column in columns)}"
