from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from querybridge.services.activity import (
    ACTIVITY_QUERY,
    ACTIVITY_SYNC_SCHEMA,
    list_activity,
    record_activity,
    sanitize_metadata,
)


def test_sanitize_metadata_redacts_nested_secrets() -> None:
    payload = {
        "engine_type": "postgres",
        "params": {"host": "db", "password": "s3cret", "nested": [{"api_key": "k"}]},
        "Authorization": "Bearer x",
    }
    sanitized = sanitize_metadata(payload)
    assert sanitized["engine_type"] == "postgres"
    assert sanitized["params"]["host"] == "db"
    assert sanitized["params"]["password"] == "[REDACTED]"
    assert sanitized["params"]["nested"][0]["api_key"] == "[REDACTED]"
    assert sanitized["Authorization"] == "[REDACTED]"


@pytest.mark.asyncio
async def test_record_and_list_activity_newest_first(database, org) -> None:
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    for offset, activity_type in enumerate([ACTIVITY_SYNC_SCHEMA, ACTIVITY_QUERY, ACTIVITY_QUERY]):
        await record_activity(
            database=database,
            activity_type=activity_type,
            org_id=org.id,
            user_id="user-1",
            details=f"entry {offset}",
            metadata={"token": "t"},
            occurred_at=base + timedelta(minutes=offset),
        )
    await record_activity(
        database=database,
        activity_type=ACTIVITY_QUERY,
        org_id="other-org",
        user_id="user-2",
        details="elsewhere",
    )

    async with database.session() as session:
        entries = await list_activity(session, org_id=org.id)
        queries_only = await list_activity(session, org_id=org.id, activity_type=ACTIVITY_QUERY, limit=1)

    assert [entry.activity_details for entry in entries] == ["entry 2", "entry 1", "entry 0"]
    assert entries[0].metadata_json == {"token": "[REDACTED]"}
    assert len(queries_only) == 1
    assert queries_only[0].activity_details == "entry 2"


@pytest.mark.asyncio
async def test_record_activity_requires_a_destination() -> None:
    with pytest.raises(ValueError):
        await record_activity(activity_type=ACTIVITY_QUERY, org_id="o", user_id="u")


@pytest.mark.asyncio
async def test_activity_write_failure_is_logged_not_raised(database, org, caplog) -> None:
    async with database.engine.begin() as conn:
        await conn.exec_driver_sql("DROP TABLE user_activity")

    await record_activity(database, activity_type=ACTIVITY_QUERY, org_id=org.id, user_id="user-1")

    assert "activity_write_failed" in caplog.text
