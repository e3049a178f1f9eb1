from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from querybridge.domain.models import AvailableTable, TableColumn
from querybridge.providers.adapters.base import TableSchema


def column_description(table_name: str, column_name: str, column_type: str) -> str:
    return f"{column_name} ({column_type}) from {table_name}"


async def list_tables_with_columns(session: AsyncSession, org_id: str) -> list[AvailableTable]:
    # Stable ordering avoids non-deterministic API responses for the same org.
    result = await session.execute(
        select(AvailableTable)
        .where(AvailableTable.org_id == org_id)
        .options(selectinload(AvailableTable.columns))
        .order_by(AvailableTable.table_name, AvailableTable.id)
    )
    return list(result.scalars().all())


async def count_tables(session: AsyncSession, org_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(AvailableTable).where(AvailableTable.org_id == org_id)
    )
    return int(result.scalar_one())


async def delete_org_metadata(session: AsyncSession, org_id: str) -> int:
    """Delete every column row, then every table row, for one org; returns tables deleted."""
    org_table_ids = select(AvailableTable.id).where(AvailableTable.org_id == org_id)
    await session.execute(
        delete(TableColumn)
        .where(TableColumn.table_id.in_(org_table_ids))
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(
        delete(AvailableTable)
        .where(AvailableTable.org_id == org_id)
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0)


async def insert_table(
    session: AsyncSession,
    *,
    org_id: str,
    table: TableSchema,
    description: str | None,
) -> AvailableTable:
    row = AvailableTable(
        org_id=org_id,
        table_name=table.name,
        table_description=description,
        is_active=True,
    )
    session.add(row)
    # Flush to obtain the id before attaching columns.
    await session.flush()
    for column in table.columns:
        session.add(
            TableColumn(
                table_id=row.id,
                column_name=column.name,
                column_type=column.type,
                column_description=column_description(table.name, column.name, column.type),
                is_searchable=True,
            )
        )
    await session.flush()
    return row


async def get_column_for_org(session: AsyncSession, org_id: str, column_id: int) -> TableColumn | None:
    # Join through the owning table so a column id from another org is indistinguishable from a missing one.
    result = await session.execute(
        select(TableColumn)
        .join(AvailableTable, TableColumn.table_id == AvailableTable.id)
        .where(TableColumn.id == column_id, AvailableTable.org_id == org_id)
    )
    return result.scalar_one_or_none()


async def get_table_for_org(session: AsyncSession, org_id: str, table_id: int) -> AvailableTable | None:
    result = await session.execute(
        select(AvailableTable)
        .where(AvailableTable.id == table_id, AvailableTable.org_id == org_id)
        .options(selectinload(AvailableTable.columns))
    )
    return result.scalar_one_or_none()
