from __future__ import annotations

from typing import Any

from sqlalchemy.engine import URL

from querybridge.providers.adapters.config import MsSqlConfig
from querybridge.providers.adapters.sqlalchemy_base import SqlAlchemyAdapter


class MsSqlAdapter(SqlAlchemyAdapter):
    engine_name = "mssql"
    tables_sql = "SELECT name FROM sys.tables WHERE is_ms_shipped = 0 ORDER BY name"
    columns_sql = (
        "SELECT c.name, ty.name FROM sys.columns c "
        "JOIN sys.tables t ON c.object_id = t.object_id "
        "JOIN sys.types ty ON c.user_type_id = ty.user_type_id "
        "WHERE t.name = :table_name ORDER BY c.column_id"
    )

    def build_url(self, config: MsSqlConfig) -> URL:
        return URL.create(
            "mssql+aioodbc",
            username=config.username,
            password=config.password.get_secret_value(),
            host=config.server,
            port=config.port,
            database=config.database,
            query={
                "driver": config.odbc_driver,
                "TrustServerCertificate": "yes" if config.trust_server_certificate else "no",
            },
        )

    def connect_args(self, config: MsSqlConfig) -> dict[str, Any]:
        # pyodbc login timeout, in whole seconds.
        return {"timeout": int(self._connect_timeout_s)}
