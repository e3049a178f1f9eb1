from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class ColumnSchema:
    name: str
    # Engine-native type string as reported by the catalog.
    type: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "type": self.type}


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: tuple[ColumnSchema, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "columns": [column.to_dict() for column in self.columns]}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "TableSchema":
        columns = tuple(
            ColumnSchema(name=str(col.get("name")), type=str(col.get("type") or ""))
            for col in payload.get("columns") or []
            if isinstance(col, dict) and col.get("name")
        )
        return cls(name=str(payload["name"]), columns=columns)


@dataclass(frozen=True)
class RawResult:
    # Driver rows keyed by column name, before display formatting.
    columns: list[str]
    rows: list[dict[str, Any]]


def tables_from_snapshot(snapshot: Any) -> list[TableSchema]:
    # Accept {"tables": [...]} or a bare list; malformed entries are dropped.
    if snapshot is None:
        return []
    raw = snapshot.get("tables") if isinstance(snapshot, dict) else snapshot
    if not isinstance(raw, list):
        return []
    return [TableSchema.from_dict(item) for item in raw if isinstance(item, dict) and item.get("name")]


def tables_to_snapshot(tables: list[TableSchema]) -> dict[str, Any]:
    return {"tables": [table.to_dict() for table in tables]}


class DatabaseAdapter(Protocol):
    async def test_connection(self, config: Any) -> None:
        ...

    async def test_and_introspect(self, config: Any) -> list[TableSchema]:
        ...

    async def execute(self, config: Any, sql: str) -> RawResult:
        ...
