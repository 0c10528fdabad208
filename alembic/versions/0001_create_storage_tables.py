"""create storage tables

Revision ID: 0001
Revises:
Create Date: 2026-10-17
"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "storage_tables",
        sa.Column("table_name", sa.Text(), primary_key=True, nullable=False),
        sa.Column(
            "data",
            postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
    )

    op.create_table(
        "analysis_cache",
        sa.Column("cache_key", sa.Text(), primary_key=True, nullable=False),
        sa.Column(
            "result_json",
            postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_analysis_cache_created", "analysis_cache", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_analysis_cache_created", table_name="analysis_cache")
    op.drop_table("analysis_cache")
    op.drop_table("storage_tables")
