from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
import math
from typing import Any, Mapping, Sequence
from uuid import UUID


BINARY_PLACEHOLDER = "[Binary Data]"


@dataclass(frozen=True)
class FormattedResult:
    columns: list[str]
    rows: list[list[Any]]


def _round2(value: float) -> float:
    return round(value, 2)


def format_value(value: Any) -> Any:
    # bool is an int subclass; both pass through unchanged.
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return str(value)
        return _round2(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return str(value)
        if value == value.to_integral_value():
            return int(value)
        return _round2(float(value))
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            return BINARY_PLACEHOLDER
    if isinstance(value, Mapping):
        return {str(key): format_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [format_value(item) for item in value]
    return str(value)


def format_rows(rows: Sequence[Mapping[str, Any]], columns: Sequence[str] | None = None) -> FormattedResult:
    """Turn driver rows into JSON-safe display rows.

    Column order comes from ``columns`` when the driver reported it, otherwise
    from the first row's keys; an empty result has no columns.
    """
    if not rows:
        return FormattedResult(columns=[], rows=[])
    resolved = [str(column) for column in columns] if columns else [str(key) for key in rows[0].keys()]
    formatted = [[format_value(row.get(column)) for column in resolved] for row in rows]
    return FormattedResult(columns=resolved, rows=formatted)
