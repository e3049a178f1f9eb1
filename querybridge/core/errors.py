from __future__ import annotations


class QueryBridgeError(Exception):
    """Base error for QueryBridge."""


class InvalidConnectionConfigError(QueryBridgeError):
    """Connection parameters do not match the declared engine type."""


class ExternalConnectionError(QueryBridgeError):
    """External database unreachable, auth failed or timed out."""


class DriverUnavailableError(ExternalConnectionError):
    """Async driver for the engine is not installed in this deployment."""


class IntrospectionTimeoutError(ExternalConnectionError):
    """Introspection exceeded its time budget; no schema change is applied."""


class IntrospectionError(QueryBridgeError):
    """Top-level catalog query failed during introspection."""


class ExternalQueryError(QueryBridgeError):
    """Driver-level failure while running a statement; carries the driver message."""


class StatementRejectedError(QueryBridgeError):
    """Candidate SQL was refused before reaching any adapter."""

    code = "STATEMENT_REJECTED"


class UnsupportedStatementType(StatementRejectedError):
    """Statement does not start with a read-only keyword."""

    code = "UNSUPPORTED_STATEMENT"


class UnsafeStatementRejected(StatementRejectedError):
    """Statement contains a mutating keyword."""

    code = "UNSAFE_STATEMENT"

    def __init__(self, message: str, keyword: str | None = None) -> None:
        super().__init__(message)
        self.keyword = keyword


class TargetObjectMissing(QueryBridgeError):
    """Referenced table/view does not exist in the target schema (schema drift)."""


class GenericExecutionError(QueryBridgeError):
    """Statement failed on the target for any other reason."""

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.detail = detail


class OrganizationNotFoundError(QueryBridgeError):
    """Organization does not exist in the metadata store."""


class DescriberConfigError(QueryBridgeError):
    """Description provider configuration missing or invalid."""


class DescriberError(QueryBridgeError):
    """Description provider request failure."""


class DatabaseError(QueryBridgeError):
    """Metadata store failure."""
