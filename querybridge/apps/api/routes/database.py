from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.apps.api.deps import (
    Principal,
    get_db,
    get_description_service,
    get_introspector,
    get_principal,
    get_synchronizer,
)
from querybridge.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from querybridge.apps.api.response import SuccessEnvelope, success_response
from querybridge.persistence.repos import tables as tables_repo
from querybridge.providers.adapters.base import ColumnSchema, TableSchema
from querybridge.services import catalog
from querybridge.services.descriptions import DescriptionService
from querybridge.services.introspection import SchemaIntrospector
from querybridge.services.schema_sync import SchemaSynchronizer, SyncOptions


router = APIRouter(prefix="/database", tags=["database"], responses=DEFAULT_ERROR_RESPONSES)


class ColumnPayload(BaseModel):
    name: str
    type: str = ""


class TablePayload(BaseModel):
    name: str
    columns: list[ColumnPayload] = Field(default_factory=list)

    def to_schema(self) -> TableSchema:
        return TableSchema(
            name=self.name,
            columns=tuple(ColumnSchema(name=col.name, type=col.type) for col in self.columns),
        )

    @classmethod
    def from_schema(cls, table: TableSchema) -> "TablePayload":
        return cls(name=table.name, columns=[ColumnPayload(name=c.name, type=c.type) for c in table.columns])


class ConnectionRequest(BaseModel):
    engine_type: str
    # Engine-specific parameters; validated against engine_type by the service layer.
    params: dict[str, Any]


class TestConnectionResponse(BaseModel):
    status: str
    engine_type: str


class SyncRequest(ConnectionRequest):
    force_refresh: bool = False
    selected_tables: list[str] = Field(default_factory=list)
    pre_supplied_schema: list[TablePayload] | None = None
    force_table_update: bool = True


class SyncResponse(BaseModel):
    preview: bool
    connection_changed: bool
    tables_updated: bool
    tables_deleted: int
    tables_added: int
    table_count: int
    skipped_tables: list[str] = Field(default_factory=list)
    # Populated for preview calls only.
    tables: list[TablePayload] | None = None


class ColumnResponse(BaseModel):
    id: int
    column_name: str
    column_type: str
    column_description: str | None
    is_searchable: bool


class TableResponse(BaseModel):
    id: int
    table_name: str
    table_description: str | None
    is_active: bool
    columns: list[ColumnResponse]


class SearchableRequest(BaseModel):
    is_searchable: bool


def _column_response(column) -> ColumnResponse:
    return ColumnResponse(
        id=column.id,
        column_name=column.column_name,
        column_type=column.column_type,
        column_description=column.column_description,
        is_searchable=column.is_searchable,
    )


def _table_response(table) -> TableResponse:
    return TableResponse(
        id=table.id,
        table_name=table.table_name,
        table_description=table.table_description,
        is_active=table.is_active,
        columns=[_column_response(column) for column in table.columns],
    )


@router.post("/test-connection", response_model=SuccessEnvelope[TestConnectionResponse])
async def test_connection(
    request: Request,
    payload: ConnectionRequest,
    principal: Principal = Depends(get_principal),
    introspector: SchemaIntrospector = Depends(get_introspector),
) -> dict:
    await introspector.test_connection(payload.engine_type, payload.params)
    data = TestConnectionResponse(status="ok", engine_type=payload.engine_type.lower())
    return success_response(request=request, data=data)


@router.post("/sync", response_model=SuccessEnvelope[SyncResponse])
async def sync_schema(
    request: Request,
    payload: SyncRequest,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    synchronizer: SchemaSynchronizer = Depends(get_synchronizer),
) -> dict:
    options = SyncOptions(
        force_refresh=payload.force_refresh,
        selected_tables=tuple(payload.selected_tables),
        pre_supplied_schema=(
            [table.to_schema() for table in payload.pre_supplied_schema]
            if payload.pre_supplied_schema is not None
            else None
        ),
        force_table_update=payload.force_table_update,
    )
    result = await synchronizer.synchronize(
        db,
        principal.org_id,
        payload.engine_type,
        payload.params,
        options,
        user_id=principal.user_id,
    )
    data = SyncResponse(
        preview=result.is_preview,
        connection_changed=result.connection_changed,
        tables_updated=result.tables_updated,
        tables_deleted=result.tables_deleted,
        tables_added=result.tables_added,
        table_count=result.table_count,
        skipped_tables=result.skipped_tables,
        tables=(
            [TablePayload.from_schema(table) for table in result.preview_tables]
            if result.preview_tables is not None
            else None
        ),
    )
    return success_response(request=request, data=data)


@router.get("/tables", response_model=SuccessEnvelope[list[TableResponse]])
async def list_tables(
    request: Request,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        tables = await tables_repo.list_tables_with_columns(db, principal.org_id)
    except SQLAlchemyError as exc:
        # Shield clients from raw database errors while still returning a useful status.
        raise HTTPException(status_code=500, detail="Database error while listing tables") from exc
    data = [_table_response(table) for table in tables]
    return success_response(request=request, data=data)


@router.post("/columns/{column_id}/searchable", response_model=SuccessEnvelope[ColumnResponse])
async def toggle_column_searchable(
    column_id: int,
    request: Request,
    payload: SearchableRequest,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        column = await tables_repo.get_column_for_org(db, principal.org_id, column_id)
        if column is None:
            # Use 404 to avoid leaking cross-org column existence.
            raise HTTPException(status_code=404, detail="Column not found")
        column.is_searchable = payload.is_searchable
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while updating column") from exc
    return success_response(request=request, data=_column_response(column))


class TableActiveRequest(BaseModel):
    is_active: bool


class TableDescriptionRequest(BaseModel):
    description: str | None = None
    # Ask the describer for fresh text instead of supplying it.
    regenerate: bool = False

    @model_validator(mode="after")
    def _one_source(self) -> "TableDescriptionRequest":
        if self.regenerate == (self.description is not None):
            raise ValueError("provide either description or regenerate=true")
        return self


class ColumnDescriptionRequest(BaseModel):
    description: str | None


@router.post("/tables/{table_id}/active", response_model=SuccessEnvelope[TableResponse])
async def toggle_table_active(
    table_id: int,
    request: Request,
    payload: TableActiveRequest,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        table = await catalog.set_table_active(db, principal.org_id, table_id, payload.is_active)
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while updating table") from exc
    if table is None:
        raise HTTPException(status_code=404, detail="Table not found")
    return success_response(request=request, data=_table_response(table))


@router.post("/tables/{table_id}/description", response_model=SuccessEnvelope[TableResponse])
async def update_table_description(
    table_id: int,
    request: Request,
    payload: TableDescriptionRequest,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    descriptions: DescriptionService = Depends(get_description_service),
) -> dict:
    try:
        table = await catalog.update_table_description(
            db,
            principal.org_id,
            table_id,
            description=payload.description,
            descriptions=descriptions if payload.regenerate else None,
        )
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while updating table") from exc
    if table is None:
        raise HTTPException(status_code=404, detail="Table not found")
    return success_response(request=request, data=_table_response(table))


@router.post("/columns/{column_id}/description", response_model=SuccessEnvelope[ColumnResponse])
async def update_column_description(
    column_id: int,
    request: Request,
    payload: ColumnDescriptionRequest,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        column = await catalog.update_column_description(db, principal.org_id, column_id, payload.description)
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(status_code=500, detail="Database error while updating column") from exc
    if column is None:
        raise HTTPException(status_code=404, detail="Column not found")
    return success_response(request=request, data=_column_response(column))
