from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# JSONB on Postgres, plain JSON elsewhere (SQLite test datastore).
JsonType = JSON().with_variant(JSONB(), "postgresql")
# SQLite only auto-increments INTEGER primary keys.
BigIntPk = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    pass


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String)
    # Engine tag of the attached external database; null until first configured.
    database_type: Mapped[str | None] = mapped_column(String, nullable=True)
    # Engine-specific connection parameters, validated against database_type on write.
    database_info_json: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    # Last stored table/column snapshot: {"tables": [{"name", "columns": [{"name", "type"}]}]}.
    database_objects_json: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class AvailableTable(Base):
    __tablename__ = "available_tables"
    __table_args__ = (Index("ix_available_tables_org_name", "org_id", "table_name"),)

    id: Mapped[int] = mapped_column(BigIntPk, primary_key=True, autoincrement=True)
    org_id: Mapped[str] = mapped_column(String, ForeignKey("organizations.id"), index=True)
    table_name: Mapped[str] = mapped_column(String)
    table_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    columns: Mapped[list["TableColumn"]] = relationship(
        back_populates="table",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TableColumn.id",
    )


class TableColumn(Base):
    __tablename__ = "table_columns"

    id: Mapped[int] = mapped_column(BigIntPk, primary_key=True, autoincrement=True)
    # Columns are owned exclusively by their table and go away with it.
    table_id: Mapped[int] = mapped_column(
        BigIntPk, ForeignKey("available_tables.id", ondelete="CASCADE"), index=True
    )
    column_name: Mapped[str] = mapped_column(String)
    # Engine-native type string, intentionally not normalized.
    column_type: Mapped[str] = mapped_column(String)
    column_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_searchable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    table: Mapped[AvailableTable] = relationship(back_populates="columns")


class QueryRecord(Base):
    __tablename__ = "queries"
    __table_args__ = (Index("ix_queries_org_execution_date", "org_id", "execution_date"),)

    id: Mapped[int] = mapped_column(BigIntPk, primary_key=True, autoincrement=True)
    org_id: Mapped[str] = mapped_column(String, index=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    # Null natural-language text marks a direct or re-executed statement.
    query_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    sql_generated: Mapped[str] = mapped_column(Text)
    execution_status: Mapped[str] = mapped_column(String)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    execution_time_ms: Mapped[float | None] = mapped_column(Float, nullable=True)
    rows_returned: Mapped[int | None] = mapped_column(Integer, nullable=True)
    execution_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class QueryPerformance(Base):
    __tablename__ = "query_performance"
    __table_args__ = (
        UniqueConstraint("org_id", "date_period", "period_type", name="uq_query_performance_scope"),
    )

    id: Mapped[int] = mapped_column(BigIntPk, primary_key=True, autoincrement=True)
    org_id: Mapped[str] = mapped_column(String, index=True)
    date_period: Mapped[date] = mapped_column(Date)
    period_type: Mapped[str] = mapped_column(String, default="daily")
    total_queries: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    successful_queries: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_queries: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Running mean in seconds, maintained incrementally per sample.
    avg_execution_time: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class UserActivity(Base):
    __tablename__ = "user_activity"

    # Append-only; rows are never updated or deleted by the gateway.
    id: Mapped[int] = mapped_column(BigIntPk, primary_key=True, autoincrement=True)
    user_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    org_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    activity_type: Mapped[str] = mapped_column(String, index=True)
    activity_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JsonType, default=dict)
    activity_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
