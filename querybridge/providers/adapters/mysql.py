from __future__ import annotations

from typing import Any

from sqlalchemy.engine import URL

from querybridge.providers.adapters.config import MySqlConfig
from querybridge.providers.adapters.sqlalchemy_base import SqlAlchemyAdapter


class MySqlAdapter(SqlAlchemyAdapter):
    engine_name = "mysql"
    tables_sql = (
        "SELECT table_name FROM information_schema.tables "
        "WHERE table_schema = DATABASE() AND table_type = 'BASE TABLE' "
        "ORDER BY table_name"
    )
    columns_sql = (
        "SELECT column_name, data_type FROM information_schema.columns "
        "WHERE table_schema = DATABASE() AND table_name = :table_name "
        "ORDER BY ordinal_position"
    )

    def build_url(self, config: MySqlConfig) -> URL:
        return URL.create(
            "mysql+aiomysql",
            username=config.user,
            password=config.password.get_secret_value(),
            host=config.host,
            port=config.port,
            database=config.database,
        )

    def connect_args(self, config: MySqlConfig) -> dict[str, Any]:
        return {"connect_timeout": int(self._connect_timeout_s)}
