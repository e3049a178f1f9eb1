from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.domain.models import AvailableTable, TableColumn
from querybridge.persistence.repos import tables as tables_repo
from querybridge.providers.adapters.base import ColumnSchema, TableSchema
from querybridge.services.descriptions import DescriptionService


logger = logging.getLogger(__name__)


def stored_schema(table: AvailableTable) -> TableSchema:
    return TableSchema(
        name=table.table_name,
        columns=tuple(ColumnSchema(name=col.column_name, type=col.column_type) for col in table.columns),
    )


async def set_table_active(
    session: AsyncSession, org_id: str, table_id: int, is_active: bool
) -> AvailableTable | None:
    table = await tables_repo.get_table_for_org(session, org_id, table_id)
    if table is None:
        return None
    table.is_active = is_active
    await session.commit()
    logger.info("table_active_updated org_id=%s table_id=%s is_active=%s", org_id, table_id, is_active)
    return table


async def update_table_description(
    session: AsyncSession,
    org_id: str,
    table_id: int,
    *,
    description: str | None = None,
    descriptions: DescriptionService | None = None,
) -> AvailableTable | None:
    """Set a table description, or regenerate it when ``descriptions`` is given.

    Regeneration goes through the describer's timeout and fallback, so it
    always produces text. Returns None when the table is not in the org.
    """
    table = await tables_repo.get_table_for_org(session, org_id, table_id)
    if table is None:
        return None
    if descriptions is not None:
        schema = stored_schema(table)
        # Release the read transaction before the describer call.
        await session.commit()
        description = await descriptions.describe_table(schema)
        # A sync may have replaced the table meanwhile.
        table = await tables_repo.get_table_for_org(session, org_id, table_id)
        if table is None:
            return None
    table.table_description = description
    await session.commit()
    logger.info(
        "table_description_updated org_id=%s table_id=%s regenerated=%s",
        org_id,
        table_id,
        descriptions is not None,
    )
    return table


async def update_column_description(
    session: AsyncSession, org_id: str, column_id: int, description: str | None
) -> TableColumn | None:
    column = await tables_repo.get_column_for_org(session, org_id, column_id)
    if column is None:
        return None
    column.column_description = description
    await session.commit()
    logger.info("column_description_updated org_id=%s column_id=%s", org_id, column_id)
    return column
