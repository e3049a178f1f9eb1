from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.domain.models import Organization


async def get_organization(session: AsyncSession, org_id: str) -> Organization | None:
    result = await session.execute(select(Organization).where(Organization.id == org_id))
    return result.scalar_one_or_none()


async def create_organization(
    session: AsyncSession,
    *,
    org_id: str,
    name: str,
    database_type: str | None = None,
    database_info_json: dict[str, Any] | None = None,
    database_objects_json: dict[str, Any] | None = None,
) -> Organization:
    org = Organization(
        id=org_id,
        name=name,
        database_type=database_type,
        database_info_json=database_info_json,
        database_objects_json=database_objects_json,
    )
    session.add(org)
    await session.flush()
    return org


def apply_connection(
    org: Organization,
    *,
    database_type: str,
    database_info_json: dict[str, Any],
    database_objects_json: dict[str, Any] | None,
) -> Organization:
    # Caller owns the transaction; this only mutates the tracked row.
    org.database_type = database_type
    org.database_info_json = database_info_json
    if database_objects_json is not None:
        org.database_objects_json = database_objects_json
    return org
