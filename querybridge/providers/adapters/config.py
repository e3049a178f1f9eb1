from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, SecretStr, TypeAdapter, ValidationError

from querybridge.core.errors import InvalidConnectionConfigError


class EngineType(str, Enum):
    ORACLE = "oracle"
    MYSQL = "mysql"
    POSTGRES = "postgres"
    MSSQL = "mssql"


class _BaseConnectionConfig(BaseModel):
    # Reject unknown keys so a blob shaped for one engine cannot pass as another.
    model_config = {"extra": "forbid", "frozen": True}

    def to_storage(self) -> dict[str, Any]:
        # Persisted form keeps secrets in clear only inside the metadata store, never in logs.
        payload = self.model_dump(mode="python", exclude={"engine_type"})
        for key, value in list(payload.items()):
            if isinstance(value, SecretStr):
                payload[key] = value.get_secret_value()
        return payload


class PostgresConfig(_BaseConnectionConfig):
    engine_type: Literal["postgres"] = "postgres"
    host: str
    port: int = 5432
    database: str
    user: str
    password: SecretStr
    ssl: bool = False
    # Introspection is restricted to one schema of user tables.
    schema_name: str = Field(default="public", alias="schema")

    model_config = {"extra": "forbid", "frozen": True, "populate_by_name": True}

    def to_storage(self) -> dict[str, Any]:
        payload = super().to_storage()
        payload["schema"] = payload.pop("schema_name")
        return payload


class MySqlConfig(_BaseConnectionConfig):
    engine_type: Literal["mysql"] = "mysql"
    host: str
    port: int = 3306
    database: str
    user: str
    password: SecretStr


class OracleConfig(_BaseConnectionConfig):
    engine_type: Literal["oracle"] = "oracle"
    user: str
    password: SecretStr
    # Easy Connect string or TNS alias, e.g. "dbhost:1521/ORCLPDB1".
    connect_string: str = Field(alias="connectString")

    model_config = {"extra": "forbid", "frozen": True, "populate_by_name": True}


class MsSqlConfig(_BaseConnectionConfig):
    engine_type: Literal["mssql"] = "mssql"
    server: str
    port: int = 1433
    database: str
    username: str
    password: SecretStr
    trust_server_certificate: bool = True
    odbc_driver: str = "ODBC Driver 18 for SQL Server"


ConnectionConfig = Annotated[
    Union[PostgresConfig, MySqlConfig, OracleConfig, MsSqlConfig],
    Field(discriminator="engine_type"),
]

_config_adapter: TypeAdapter[ConnectionConfig] = TypeAdapter(ConnectionConfig)


def normalize_engine_type(value: str | EngineType | None) -> EngineType:
    if isinstance(value, EngineType):
        return value
    if not value:
        raise InvalidConnectionConfigError("engine type is required")
    try:
        return EngineType(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidConnectionConfigError(f"unsupported engine type: {value}") from exc


def parse_connection_config(engine_type: str | EngineType, params: dict[str, Any] | None) -> ConnectionConfig:
    # Keep a single validation path so sync, test-connection and execution agree.
    resolved = normalize_engine_type(engine_type)
    if params is None or not isinstance(params, dict):
        raise InvalidConnectionConfigError("connection parameters must be an object")
    payload = {k: v for k, v in params.items() if k not in {"engine_type", "databaseType"}}
    payload["engine_type"] = resolved.value
    try:
        return _config_adapter.validate_python(payload)
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in err["loc"][1:]) or "params" for err in exc.errors()})
        raise InvalidConnectionConfigError(
            f"invalid {resolved.value} connection parameters: {', '.join(fields)}"
        ) from exc


def describe_target(config: ConnectionConfig) -> str:
    # Log-safe target description; never includes credentials.
    match config:
        case PostgresConfig() | MySqlConfig():
            return f"{config.engine_type}://{config.host}:{config.port}/{config.database}"
        case OracleConfig():
            return f"oracle://{config.connect_string}"
        case MsSqlConfig():
            return f"mssql://{config.server}:{config.port}/{config.database}"
