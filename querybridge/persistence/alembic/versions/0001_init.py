"""init

Revision ID: 0001_init
Revises: 
Create Date: 2026-10-18 09:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("database_type", sa.String(), nullable=True),
        sa.Column("database_info_json", postgresql.JSONB(), nullable=True),
        sa.Column("database_objects_json", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "available_tables",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        # Avoid index=True here because we create explicit indexes below.
        sa.Column("org_id", sa.String(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("table_name", sa.String(), nullable=False),
        sa.Column("table_description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_available_tables_org_id", "available_tables", ["org_id"])
    op.create_index("ix_available_tables_org_name", "available_tables", ["org_id", "table_name"])

    op.create_table(
        "table_columns",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "table_id",
            sa.BigInteger(),
            sa.ForeignKey("available_tables.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("column_name", sa.String(), nullable=False),
        sa.Column("column_type", sa.String(), nullable=False),
        sa.Column("column_description", sa.Text(), nullable=True),
        sa.Column("is_searchable", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_table_columns_table_id", "table_columns", ["table_id"])

    op.create_table(
        "queries",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("query_text", sa.Text(), nullable=True),
        sa.Column("sql_generated", sa.Text(), nullable=False),
        sa.Column("execution_status", sa.String(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("execution_time_ms", sa.Float(), nullable=True),
        sa.Column("rows_returned", sa.Integer(), nullable=True),
        sa.Column("execution_date", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_queries_org_id", "queries", ["org_id"])
    op.create_index("ix_queries_user_id", "queries", ["user_id"])
    op.create_index("ix_queries_org_execution_date", "queries", ["org_id", "execution_date"])

    op.create_table(
        "query_performance",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("date_period", sa.Date(), nullable=False),
        sa.Column("period_type", sa.String(), nullable=False, server_default="daily"),
        sa.Column("total_queries", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("successful_queries", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_queries", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_execution_time", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        # Target of the aggregate upsert; concurrent samples rely on it.
        sa.UniqueConstraint("org_id", "date_period", "period_type", name="uq_query_performance_scope"),
    )
    op.create_index("ix_query_performance_org_id", "query_performance", ["org_id"])

    op.create_table(
        "user_activity",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("org_id", sa.String(), nullable=True),
        sa.Column("activity_type", sa.String(), nullable=False),
        sa.Column("activity_details", sa.Text(), nullable=True),
        sa.Column("metadata_json", postgresql.JSONB(), nullable=True),
        sa.Column("activity_date", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_user_activity_user_id", "user_activity", ["user_id"])
    op.create_index("ix_user_activity_org_id", "user_activity", ["org_id"])
    op.create_index("ix_user_activity_activity_type", "user_activity", ["activity_type"])
    op.create_index("ix_user_activity_activity_date", "user_activity", ["activity_date"])


def downgrade() -> None:
    op.drop_index("ix_user_activity_activity_date", table_name="user_activity")
    op.drop_index("ix_user_activity_activity_type", table_name="user_activity")
    op.drop_index("ix_user_activity_org_id", table_name="user_activity")
    op.drop_index("ix_user_activity_user_id", table_name="user_activity")
    op.drop_table("user_activity")
    op.drop_index("ix_query_performance_org_id", table_name="query_performance")
    op.drop_table("query_performance")
    op.drop_index("ix_queries_org_execution_date", table_name="queries")
    op.drop_index("ix_queries_user_id", table_name="queries")
    op.drop_index("ix_queries_org_id", table_name="queries")
    op.drop_table("queries")
    op.drop_index("ix_table_columns_table_id", table_name="table_columns")
    op.drop_table("table_columns")
    op.drop_index("ix_available_tables_org_name", table_name="available_tables")
    op.drop_index("ix_available_tables_org_id", table_name="available_tables")
    op.drop_table("available_tables")
    op.drop_table("organizations")
