from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.core.errors import (
    DatabaseError,
    InvalidConnectionConfigError,
    OrganizationNotFoundError,
    QueryBridgeError,
)
from querybridge.domain.models import Organization
from querybridge.persistence.db import Database
from querybridge.persistence.repos import tables as tables_repo
from querybridge.persistence.repos.organizations import apply_connection, get_organization
from querybridge.providers.adapters.base import TableSchema, tables_from_snapshot, tables_to_snapshot
from querybridge.providers.adapters.config import (
    ConnectionConfig,
    EngineType,
    describe_target,
    parse_connection_config,
)
from querybridge.services.activity import (
    ACTIVITY_SYNC_SCHEMA,
    ACTIVITY_SYNC_SCHEMA_FAILED,
    record_activity,
)
from querybridge.services.descriptions import DescriptionService
from querybridge.services.introspection import SchemaIntrospector


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncOptions:
    force_refresh: bool = False
    selected_tables: tuple[str, ...] = ()
    pre_supplied_schema: list[TableSchema] | None = None
    force_table_update: bool = True


@dataclass(frozen=True)
class SyncResult:
    tables_deleted: int = 0
    tables_added: int = 0
    connection_changed: bool = False
    tables_updated: bool = False
    table_count: int = 0
    # Set only for preview calls; nothing was persisted.
    preview_tables: list[TableSchema] | None = None
    skipped_tables: list[str] = field(default_factory=list)

    @property
    def is_preview(self) -> bool:
        return self.preview_tables is not None


def _connection_changed(org: Organization, config: ConnectionConfig) -> bool:
    if org.database_type != config.engine_type:
        return True
    if not org.database_info_json:
        return True
    try:
        stored = parse_connection_config(org.database_type, org.database_info_json)
    except InvalidConnectionConfigError:
        # A stored blob that no longer validates is treated as a different connection.
        return True
    return stored != config


class SchemaSynchronizer:
    """Mirrors an org's external schema into the metadata store.

    Network work (introspection, descriptions) happens outside any metadata
    transaction. The destructive replacement then runs in one transaction, with
    one SAVEPOINT per inserted table so a single bad table is skipped rather
    than aborting the whole sync.
    """

    def __init__(
        self,
        database: Database,
        *,
        introspector: SchemaIntrospector | None = None,
        descriptions: DescriptionService | None = None,
    ) -> None:
        self._database = database
        self._introspector = introspector or SchemaIntrospector()
        self._descriptions = descriptions or DescriptionService()

    async def synchronize(
        self,
        session: AsyncSession,
        org_id: str,
        engine_type: str | EngineType,
        params: dict[str, Any],
        options: SyncOptions | None = None,
        *,
        user_id: str | None = None,
    ) -> SyncResult:
        options = options or SyncOptions()
        try:
            result = await self._synchronize(session, org_id, engine_type, params, options)
        except (QueryBridgeError, SQLAlchemyError) as exc:
            await record_activity(
                database=self._database,
                activity_type=ACTIVITY_SYNC_SCHEMA_FAILED,
                org_id=org_id,
                user_id=user_id,
                details=f"Schema sync failed: {type(exc).__name__}",
                metadata={"engine_type": str(engine_type), "error": str(exc)[:500]},
            )
            raise
        if not result.is_preview:
            await record_activity(
                database=self._database,
                activity_type=ACTIVITY_SYNC_SCHEMA,
                org_id=org_id,
                user_id=user_id,
                details=f"Schema synced: {result.tables_added} tables added, {result.tables_deleted} deleted",
                metadata={
                    "engine_type": str(engine_type),
                    "connection_changed": result.connection_changed,
                    "tables_updated": result.tables_updated,
                    "table_count": result.table_count,
                    "skipped_tables": result.skipped_tables,
                },
            )
        return result

    async def _synchronize(
        self,
        session: AsyncSession,
        org_id: str,
        engine_type: str | EngineType,
        params: dict[str, Any],
        options: SyncOptions,
    ) -> SyncResult:
        org = await get_organization(session, org_id)
        if org is None:
            raise OrganizationNotFoundError(f"organization not found: {org_id}")
        config = parse_connection_config(engine_type, params)
        connection_changed = _connection_changed(org, config)
        stored_snapshot = org.database_objects_json
        # Release the read transaction before slow network calls.
        await session.commit()

        target = describe_target(config)
        selected = [name for name in options.selected_tables if name]
        pre_supplied = options.pre_supplied_schema

        introspected: list[TableSchema] | None = None
        if pre_supplied is None and (options.force_refresh or connection_changed or selected):
            introspected = await self._introspector.introspect_config(config)

        if options.force_refresh and not selected and pre_supplied is None:
            logger.info("schema_sync_preview org_id=%s target=%s tables=%s", org_id, target, len(introspected or []))
            return SyncResult(
                connection_changed=connection_changed,
                preview_tables=list(introspected or []),
            )

        new_snapshot: dict[str, Any] | None = None
        if pre_supplied is not None:
            tables = list(pre_supplied)
            new_snapshot = tables_to_snapshot(tables)
        elif selected:
            wanted = set(selected)
            tables = [table for table in introspected or [] if table.name in wanted]
            new_snapshot = tables_to_snapshot(tables)
        elif connection_changed:
            tables = list(introspected or [])
            new_snapshot = tables_to_snapshot(tables)
        elif options.force_table_update and stored_snapshot:
            tables = tables_from_snapshot(stored_snapshot)
        else:
            tables = []

        replace = options.force_table_update or connection_changed or bool(selected)
        descriptions = await self._descriptions.describe_all(tables) if replace else {}

        tables_deleted = 0
        tables_added = 0
        skipped: list[str] = []
        try:
            async with session.begin():
                org = await get_organization(session, org_id)
                if org is None:
                    raise OrganizationNotFoundError(f"organization not found: {org_id}")
                apply_connection(
                    org,
                    database_type=config.engine_type,
                    database_info_json=config.to_storage(),
                    database_objects_json=new_snapshot,
                )
                if replace:
                    tables_deleted = await tables_repo.delete_org_metadata(session, org_id)
                    for table in tables:
                        try:
                            async with session.begin_nested():
                                await tables_repo.insert_table(
                                    session,
                                    org_id=org_id,
                                    table=table,
                                    description=descriptions.get(table.name),
                                )
                        except SQLAlchemyError as exc:
                            logger.warning(
                                "schema_sync_table_skipped org_id=%s table=%s error=%s",
                                org_id,
                                table.name,
                                type(exc).__name__,
                            )
                            skipped.append(table.name)
                            continue
                        tables_added += 1
                table_count = await tables_repo.count_tables(session, org_id)
        except SQLAlchemyError as exc:
            # The transaction rolled back; prior metadata is intact.
            logger.error("schema_sync_replace_failed org_id=%s target=%s", org_id, target, exc_info=exc)
            raise DatabaseError("schema metadata replacement failed") from exc

        logger.info(
            "schema_sync_complete org_id=%s target=%s changed=%s updated=%s deleted=%s added=%s skipped=%s",
            org_id,
            target,
            connection_changed,
            replace,
            tables_deleted,
            tables_added,
            len(skipped),
        )
        return SyncResult(
            tables_deleted=tables_deleted,
            tables_added=tables_added,
            connection_changed=connection_changed,
            tables_updated=replace,
            table_count=table_count,
            skipped_tables=skipped,
        )
