"""SQLAlchemy ORM model for student profiles.

One row per user.  Each source worker owns exactly one ``raw_data`` slot and
one completion flag; the flags are monotonic (false -> true) and are read by
the coordinator to decide when both branches have resolved.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_pipeline.core.models.base import Base, TimestampMixin


class StudentProfile(Base, TimestampMixin):
    """Per-user record of submitted source URLs and their normalized output.

    Attributes:
        id: UUID primary key.
        user_id: Owning user (unique).  Users live in an external service,
            so there is no FK.
        github_url: Last-submitted GitHub profile URL.
        linkedin_url: Last-submitted LinkedIn profile URL.
        raw_data: ``{"github": {...}, "linkedin": {...}}``.  Slots are
            written with ``jsonb_set`` so the two workers never clobber each
            other.
        github_processed: Set to ``true`` by the GitHub worker on any
            terminal outcome.
        linkedin_processed: Set to ``true`` by the LinkedIn worker on any
            terminal outcome.
        aggregation_triggered: Compare-and-swap guard that lets exactly one
            coordinator call enqueue the aggregation job.
    """

    __tablename__ = "student_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )
    user_id: Mapped[str] = mapped_column(
        sa.String(255),
        nullable=False,
        unique=True,
    )
    github_url: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    linkedin_url: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    raw_data: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        server_default=sa.text("""'{"github": {}, "linkedin": {}}'::jsonb"""),
    )
    github_processed: Mapped[bool] = mapped_column(
        sa.Boolean,
        nullable=False,
        server_default=sa.text("false"),
    )
    linkedin_processed: Mapped[bool] = mapped_column(
        sa.Boolean,
        nullable=False,
        server_default=sa.text("false"),
    )
    aggregation_triggered: Mapped[bool] = mapped_column(
        sa.Boolean,
        nullable=False,
        server_default=sa.text("false"),
    )

    def __repr__(self) -> str:
        return f"<StudentProfile id={self.id} user_id={self.user_id!r}>"
