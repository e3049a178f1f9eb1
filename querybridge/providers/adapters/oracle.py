from __future__ import annotations

from typing import Any

from sqlalchemy.engine import URL

from querybridge.providers.adapters.config import OracleConfig
from querybridge.providers.adapters.sqlalchemy_base import SqlAlchemyAdapter


class OracleAdapter(SqlAlchemyAdapter):
    engine_name = "oracle"
    ping_sql = "SELECT 1 FROM DUAL"
    tables_sql = "SELECT table_name FROM user_tables ORDER BY table_name"
    columns_sql = (
        "SELECT column_name, data_type FROM user_tab_columns "
        "WHERE table_name = :table_name ORDER BY column_id"
    )

    def build_url(self, config: OracleConfig) -> URL:
        # python-oracledb takes the Easy Connect string as dsn; the URL only selects the dialect.
        return URL.create("oracle+oracledb")

    def connect_args(self, config: OracleConfig) -> dict[str, Any]:
        return {
            "user": config.user,
            "password": config.password.get_secret_value(),
            "dsn": config.connect_string,
            "tcp_connect_timeout": self._connect_timeout_s,
        }
