from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.domain.models import UserActivity


async def list_activity(
    session: AsyncSession,
    *,
    org_id: str,
    activity_type: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> list[UserActivity]:
    # Scope all activity reads to one org to prevent cross-org leakage.
    stmt = select(UserActivity).where(UserActivity.org_id == org_id)
    if activity_type:
        stmt = stmt.where(UserActivity.activity_type == activity_type)
    stmt = stmt.order_by(UserActivity.activity_date.desc(), UserActivity.id.desc())
    stmt = stmt.offset(offset).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
