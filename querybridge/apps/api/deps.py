from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from querybridge.persistence.db import Database
from querybridge.providers.adapters.router import AdapterRouter
from querybridge.providers.describer.factory import load_table_describer
from querybridge.services.descriptions import DescriptionService
from querybridge.services.execution import QueryExecutionService
from querybridge.services.introspection import SchemaIntrospector
from querybridge.services.performance import PerformanceAggregator
from querybridge.services.schema_sync import SchemaSynchronizer


def get_database(request: Request) -> Database:
    # The lifespan (or the test harness) owns the Database; routes only borrow it.
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "SERVICE_UNAVAILABLE", "message": "Metadata store is not initialized"},
        )
    return database


async def get_db(database: Database = Depends(get_database)) -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with database.session() as session:
        yield session


class Principal(BaseModel):
    # Caller identity as asserted by the upstream gateway; used for org scoping only.
    org_id: str
    user_id: str


def get_principal(
    x_org_id: str | None = Header(default=None, alias="X-Org-Id"),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> Principal:
    org_id = (x_org_id or "").strip()
    user_id = (x_user_id or "").strip()
    if not org_id or not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "AUTH_UNAUTHORIZED", "message": "X-Org-Id and X-User-Id headers are required"},
        )
    return Principal(org_id=org_id, user_id=user_id)


def get_adapter_router() -> AdapterRouter:
    return AdapterRouter()


def get_description_service(request: Request) -> DescriptionService:
    # One describer per app so its HTTP client pool is shared and closed once at shutdown.
    describer = getattr(request.app.state, "describer", None)
    if describer is None:
        describer = load_table_describer()
        request.app.state.describer = describer
    return DescriptionService(describer)


def get_introspector(router: AdapterRouter = Depends(get_adapter_router)) -> SchemaIntrospector:
    return SchemaIntrospector(router)


def get_synchronizer(
    database: Database = Depends(get_database),
    introspector: SchemaIntrospector = Depends(get_introspector),
    descriptions: DescriptionService = Depends(get_description_service),
) -> SchemaSynchronizer:
    return SchemaSynchronizer(database, introspector=introspector, descriptions=descriptions)


def get_aggregator(database: Database = Depends(get_database)) -> PerformanceAggregator:
    return PerformanceAggregator(database)


def get_execution_service(
    database: Database = Depends(get_database),
    router: AdapterRouter = Depends(get_adapter_router),
    aggregator: PerformanceAggregator = Depends(get_aggregator),
) -> QueryExecutionService:
    return QueryExecutionService(database, router=router, aggregator=aggregator)
