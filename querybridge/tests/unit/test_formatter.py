from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from querybridge.services.formatter import BINARY_PLACEHOLDER, format_rows, format_value


def test_numbers_round_to_two_places_and_integers_pass_through() -> None:
    assert format_value(3.14159) == 3.14
    assert format_value(Decimal("10.126")) == 10.13
    assert format_value(Decimal("42.00")) == 42
    assert isinstance(format_value(Decimal("42.00")), int)
    assert format_value(7) == 7
    assert format_value(True) is True
    assert format_value("text") == "text"
    assert format_value(None) is None


def test_non_finite_numbers_become_strings() -> None:
    assert format_value(Decimal("NaN")) == "NaN"
    assert format_value(float("nan")) == "nan"
    assert format_value(float("inf")) == "inf"
    assert format_value(float("-inf")) == "-inf"


def test_temporal_values_use_iso_strings() -> None:
    moment = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)
    assert format_value(moment) == "2024-03-01T12:30:00+00:00"
    assert format_value(date(2024, 3, 1)) == "2024-03-01"
    assert format_value(time(8, 15)) == "08:15:00"
    assert format_value(timedelta(hours=1)) == "1:00:00"


def test_binary_and_misc_values() -> None:
    assert format_value(b"hello") == "hello"
    assert format_value(b"\xff\xfe\x00") == BINARY_PLACEHOLDER
    assert format_value(UUID("12345678-1234-5678-1234-567812345678")) == "12345678-1234-5678-1234-567812345678"
    assert format_value({"amount": 1.234, "tags": (1, 2.555)}) == {"amount": 1.23, "tags": [1, 2.56]}


def test_format_rows_uses_first_row_keys_when_columns_missing() -> None:
    rows = [{"id": 1, "total": Decimal("9.999")}, {"id": 2, "total": None}]
    result = format_rows(rows)
    assert result.columns == ["id", "total"]
    assert result.rows == [[1, 10.0], [2, None]]


def test_format_rows_respects_driver_column_order() -> None:
    rows = [{"b": 2, "a": 1}]
    result = format_rows(rows, ["a", "b"])
    assert result.columns == ["a", "b"]
    assert result.rows == [[1, 2]]


def test_empty_result_has_no_columns() -> None:
    result = format_rows([], ["id", "name"])
    assert result.columns == []
    assert result.rows == []


def test_format_rows_does_not_mutate_input() -> None:
    rows = [{"price": 1.005}]
    format_rows(rows)
    assert rows == [{"price": 1.005}]
