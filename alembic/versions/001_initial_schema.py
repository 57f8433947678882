"""Initial schema: student_profiles, crawl_jobs, portfolios.

Tables are created in FK-dependency order:

1. student_profiles  - one row per user; raw source data + completion flags
2. crawl_jobs        - one row per dispatched source job (FK → student_profiles)
3. portfolios        - one row per user; aggregation output

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables and indexes."""

    # ------------------------------------------------------------------
    # 1. student_profiles
    # ------------------------------------------------------------------
    op.create_table(
        "student_profiles",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("github_url", sa.Text, nullable=True),
        sa.Column("linkedin_url", sa.Text, nullable=True),
        sa.Column(
            "raw_data",
            JSONB,
            nullable=False,
            server_default=sa.text("""'{"github": {}, "linkedin": {}}'::jsonb"""),
        ),
        sa.Column("github_processed", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("linkedin_processed", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("aggregation_triggered", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.UniqueConstraint("user_id", name="uq_student_profiles_user_id"),
    )

    # ------------------------------------------------------------------
    # 2. crawl_jobs
    # ------------------------------------------------------------------
    op.create_table(
        "crawl_jobs",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "student_profile_id",
            sa.UUID(),
            sa.ForeignKey("student_profiles.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("source_type", sa.String(20), nullable=False),
        sa.Column("source_url", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'queued'")),
        sa.Column("error_messages", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("start_time", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completion_time", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("celery_task_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.CheckConstraint(
            "source_type IN ('github', 'linkedin')",
            name="ck_crawl_jobs_source_type",
        ),
        sa.CheckConstraint(
            "status IN ('queued', 'processing', 'completed', 'partial', 'failed')",
            name="ck_crawl_jobs_status",
        ),
    )
    op.create_index("idx_crawl_jobs_profile", "crawl_jobs", ["student_profile_id"])
    op.create_index("idx_crawl_jobs_status", "crawl_jobs", ["status"])

    # ------------------------------------------------------------------
    # 3. portfolios
    # ------------------------------------------------------------------
    op.create_table(
        "portfolios",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("data", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("error", sa.Text, nullable=True),
        sa.Column("last_generated", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.UniqueConstraint("user_id", name="uq_portfolios_user_id"),
        sa.CheckConstraint(
            "status IN ('pending', 'generating', 'completed', 'failed')",
            name="ck_portfolios_status",
        ),
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table("portfolios")
    op.drop_index("idx_crawl_jobs_status", table_name="crawl_jobs")
    op.drop_index("idx_crawl_jobs_profile", table_name="crawl_jobs")
    op.drop_table("crawl_jobs")
    op.drop_table("student_profiles")
