"""SQLAlchemy ORM model for crawl jobs.

A ``CrawlJob`` tracks one source's extraction attempt for one submission.
Rows are created by the dispatcher in ``queued``, mutated only by the
owning worker, and never deleted.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_pipeline.core.models.base import Base, TimestampMixin


class CrawlJob(Base, TimestampMixin):
    """A single GitHub or LinkedIn collection job.

    Attributes:
        id: UUID primary key.
        student_profile_id: Owning profile.
        source_type: ``"github"`` or ``"linkedin"``.
        source_url: URL the job was dispatched for.
        status: ``"queued"``, ``"processing"``, ``"completed"``,
            ``"partial"`` or ``"failed"``.
        error_messages: Append-only JSON list of failure strings.
        start_time: Stamped once when the worker picks the job up.
        completion_time: Stamped once on the terminal transition.
        celery_task_id: ID of the Celery task that published the job.
    """

    __tablename__ = "crawl_jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )
    student_profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("student_profiles.id", ondelete="RESTRICT"),
        nullable=False,
    )
    source_type: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    source_url: Mapped[str] = mapped_column(sa.Text, nullable=False)

    status: Mapped[str] = mapped_column(
        sa.String(20),
        nullable=False,
        server_default=sa.text("'queued'"),
    )
    error_messages: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        server_default=sa.text("'[]'::jsonb"),
    )
    start_time: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )
    completion_time: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )
    celery_task_id: Mapped[Optional[str]] = mapped_column(
        sa.String(255),
        nullable=True,
    )

    __table_args__ = (
        sa.Index("idx_crawl_jobs_profile", "student_profile_id"),
        sa.Index("idx_crawl_jobs_status", "status"),
        sa.CheckConstraint(
            "source_type IN ('github', 'linkedin')",
            name="ck_crawl_jobs_source_type",
        ),
        sa.CheckConstraint(
            "status IN ('queued', 'processing', 'completed', 'partial', 'failed')",
            name="ck_crawl_jobs_status",
        ),
    )
