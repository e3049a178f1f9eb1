from __future__ import annotations

import ssl as ssl_lib
from typing import Any

from sqlalchemy.engine import URL

from querybridge.providers.adapters.config import PostgresConfig
from querybridge.providers.adapters.sqlalchemy_base import SqlAlchemyAdapter


class PostgresAdapter(SqlAlchemyAdapter):
    engine_name = "postgres"
    tables_sql = (
        "SELECT table_name FROM information_schema.tables "
        "WHERE table_schema = :schema AND table_type = 'BASE TABLE' "
        "ORDER BY table_name"
    )
    columns_sql = (
        "SELECT column_name, data_type FROM information_schema.columns "
        "WHERE table_schema = :schema AND table_name = :table_name "
        "ORDER BY ordinal_position"
    )

    def build_url(self, config: PostgresConfig) -> URL:
        return URL.create(
            "postgresql+asyncpg",
            username=config.user,
            password=config.password.get_secret_value(),
            host=config.host,
            port=config.port,
            database=config.database,
        )

    def connect_args(self, config: PostgresConfig) -> dict[str, Any]:
        args: dict[str, Any] = {"timeout": self._connect_timeout_s}
        if config.ssl:
            # Encrypt without pinning a CA; managed databases rotate their chains.
            context = ssl_lib.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl_lib.CERT_NONE
            args["ssl"] = context
        return args

    def table_params(self, config: PostgresConfig) -> dict[str, Any]:
        return {"schema": config.schema_name}

    def column_params(self, config: PostgresConfig, table_name: str) -> dict[str, Any]:
        return {"schema": config.schema_name, "table_name": table_name}
