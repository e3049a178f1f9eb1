from __future__ import annotations

from typing import Any, Callable

from querybridge.core.errors import InvalidConnectionConfigError
from querybridge.providers.adapters.base import DatabaseAdapter
from querybridge.providers.adapters.config import (
    ConnectionConfig,
    EngineType,
    MsSqlConfig,
    MySqlConfig,
    OracleConfig,
    PostgresConfig,
)
from querybridge.providers.adapters.mssql import MsSqlAdapter
from querybridge.providers.adapters.mysql import MySqlAdapter
from querybridge.providers.adapters.oracle import OracleAdapter
from querybridge.providers.adapters.postgres import PostgresAdapter


AdapterFactory = Callable[[], Any]


def default_adapter_factories() -> dict[EngineType, AdapterFactory]:
    return {
        EngineType.POSTGRES: PostgresAdapter,
        EngineType.MYSQL: MySqlAdapter,
        EngineType.ORACLE: OracleAdapter,
        EngineType.MSSQL: MsSqlAdapter,
    }


class AdapterRouter:
    def __init__(self, factories: dict[EngineType, AdapterFactory] | None = None) -> None:
        # Allow tests to inject stub adapters without any external database.
        self._factories = factories or default_adapter_factories()

    def adapter_for(self, config: ConnectionConfig) -> DatabaseAdapter:
        # Exhaustive over the config variants; a new engine must be wired here to be reachable.
        match config:
            case PostgresConfig():
                engine = EngineType.POSTGRES
            case MySqlConfig():
                engine = EngineType.MYSQL
            case OracleConfig():
                engine = EngineType.ORACLE
            case MsSqlConfig():
                engine = EngineType.MSSQL
            case _:
                raise InvalidConnectionConfigError("unsupported connection config")
        factory = self._factories.get(engine)
        if factory is None:
            raise InvalidConnectionConfigError(f"no adapter registered for {engine.value}")
        return factory()
