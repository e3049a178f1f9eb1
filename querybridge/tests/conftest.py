from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import event

from querybridge.core.config import get_settings
from querybridge.domain.models import Base, Organization
from querybridge.persistence.db import Database
from querybridge.persistence.repos.organizations import create_organization


def _use_immediate_transactions(database: Database) -> None:
    # pysqlite defers BEGIN and breaks SAVEPOINT; take the write lock up front so
    # concurrent writers queue on the busy timeout instead of deadlocking.
    sync_engine = database.engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def _on_connect(dbapi_connection, _connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def _on_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


@pytest.fixture(autouse=True)
def reset_settings_cache() -> None:
    # Tests that patch env vars must not leak cached settings into the next test.
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
async def database(tmp_path: Path) -> Database:
    db = Database(
        f"sqlite+aiosqlite:///{tmp_path / 'metadata.db'}",
        connect_args={"timeout": 30},
    )
    _use_immediate_transactions(db)
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db
    await db.dispose()


@pytest.fixture
async def org(database: Database) -> Organization:
    async with database.session() as session:
        created = await create_organization(session, org_id="org-acme", name="Acme")
        await session.commit()
    return created


@pytest.fixture
def postgres_params() -> dict:
    return {
        "host": "warehouse.internal",
        "port": 5432,
        "database": "sales",
        "user": "reader",
        "password": "s3cret",
    }
