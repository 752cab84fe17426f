"""create_analysis_history

Revision ID: 001_create_analysis_history
Revises:
Create Date: 2026-10-19 09:00:00.000000 UTC

Creates the analysis_history table:
  one row per submission attempt, status pending → completed | failed,
  JSONB payload columns, owner-scoped by user_id.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_create_analysis_history"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "analysis_history",
        sa.Column("id", sa.String(length=36), nullable=False, comment="UUID row identifier (the analysisId returned to clients)"),
        sa.Column("user_id", sa.String(length=64), nullable=False, comment="Owner — subject claim of the verified auth token"),
        sa.Column("company_name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, comment="'pending' | 'completed' | 'failed'"),
        sa.Column("parsed_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment="Extracted profile awaiting analysis; cleared on completion"),
        sa.Column("business_profile", postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment="Validated BusinessProfile that was analyzed"),
        sa.Column("recommendations", postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment="List of ServiceRecommendation dicts"),
        sa.Column("project_blueprint", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("business_profile_pdf_url", sa.Text(), nullable=True, comment="Stored object-storage URL of the uploaded source document"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed')",
            name="ck_analysis_history_status",
        ),
    )
    op.create_index(op.f("ix_analysis_history_user_id"), "analysis_history", ["user_id"], unique=False)
    op.create_index(op.f("ix_analysis_history_created_at"), "analysis_history", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_analysis_history_created_at"), table_name="analysis_history")
    op.drop_index(op.f("ix_analysis_history_user_id"), table_name="analysis_history")
    op.drop_table("analysis_history")
