from __future__ import annotations

from typing import Sequence

from querybridge.providers.adapters.base import ColumnSchema
from querybridge.providers.describer.base import fallback_description


class FakeTableDescriber:
    def __init__(self, prefix: str = "Stores") -> None:
        # Deterministic output keeps sync tests stable without external calls.
        self._prefix = prefix

    async def describe(self, table_name: str, columns: Sequence[ColumnSchema]) -> str:
        column_info = ", ".join(f"{column.name} ({column.type})" for column in columns)
        return f"{self._prefix} {table_name} records: {column_info}"

    async def aclose(self) -> None:
        return None


class NullTableDescriber:
    # Descriptions disabled: every table gets the fallback text.
    async def describe(self, table_name: str, columns: Sequence[ColumnSchema]) -> str:
        return fallback_description(table_name, columns)

    async def aclose(self) -> None:
        return None
