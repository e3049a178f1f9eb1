from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.domain.models import UserActivity
from querybridge.persistence.db import Database
from querybridge.persistence.repos import activity as activity_repo


logger = logging.getLogger(__name__)

ACTIVITY_QUERY = "QUERY"
ACTIVITY_EXECUTE_QUERY = "EXECUTE_QUERY"
ACTIVITY_FAILED_QUERY = "FAILED_QUERY"
ACTIVITY_SYNC_SCHEMA = "SYNC_SCHEMA"
ACTIVITY_SYNC_SCHEMA_FAILED = "SYNC_SCHEMA_FAILED"

_SENSITIVE_KEY_PATTERNS = ["api_key", "authorization", "token", "secret", "password", "credential"]
_REDACTED_VALUE = "[REDACTED]"


def _is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(pattern in lowered for pattern in _SENSITIVE_KEY_PATTERNS)


def sanitize_metadata(value: Any) -> Any:
    # Recursively scrub sensitive fields while preserving safe structure.
    if isinstance(value, dict):
        sanitized: dict[str, Any] = {}
        for raw_key, raw_value in value.items():
            key = str(raw_key)
            if _is_sensitive_key(key):
                sanitized[key] = _REDACTED_VALUE
            else:
                sanitized[key] = sanitize_metadata(raw_value)
        return sanitized
    if isinstance(value, list):
        return [sanitize_metadata(item) for item in value]
    return value


async def record_activity(
    database: Database,
    *,
    activity_type: str,
    org_id: str | None,
    user_id: str | None,
    details: str | None = None,
    metadata: dict[str, Any] | None = None,
    occurred_at: datetime | None = None,
) -> None:
    """Append one activity row in its own session; failures are logged, never raised.

    The dedicated session keeps the entry even when the caller's transaction
    rolls back.
    """
    entry = UserActivity(
        user_id=user_id,
        org_id=org_id,
        activity_type=activity_type,
        activity_details=details,
        metadata_json=sanitize_metadata(metadata or {}),
        activity_date=occurred_at or datetime.now(timezone.utc),
    )
    async with database.session() as session:
        try:
            session.add(entry)
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.warning(
                "activity_write_failed activity_type=%s org_id=%s", activity_type, org_id, exc_info=exc
            )


async def list_activity(
    session: AsyncSession,
    *,
    org_id: str,
    limit: int = 50,
    offset: int = 0,
    activity_type: str | None = None,
) -> list[UserActivity]:
    # Clamp paging to keep dashboard reads bounded.
    limit = max(1, min(int(limit), 200))
    offset = max(0, int(offset))
    return await activity_repo.list_activity(
        session, org_id=org_id, activity_type=activity_type, offset=offset, limit=limit
    )
