"""SQLAlchemy ORM model for generated portfolios."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_pipeline.core.models.base import Base, TimestampMixin


class Portfolio(Base, TimestampMixin):
    """Denormalized aggregation output for one user.

    The coordinator only ever writes ``status`` and ``error`` (when it fails
    the join before aggregation starts); ``data`` is owned by the
    aggregation task.

    Attributes:
        id: UUID primary key.
        user_id: Owning user (unique).
        status: ``"pending"``, ``"generating"``, ``"completed"`` or
            ``"failed"``.
        data: Bio, skills, projects, work experience and achievements.
        error: Human-readable failure reason.
        last_generated: When ``data`` was last written.
    """

    __tablename__ = "portfolios"

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
    status: Mapped[str] = mapped_column(
        sa.String(20),
        nullable=False,
        server_default=sa.text("'pending'"),
    )
    data: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        server_default=sa.text("'{}'::jsonb"),
    )
    error: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    last_generated: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        sa.CheckConstraint(
            "status IN ('pending', 'generating', 'completed', 'failed')",
            name="ck_portfolios_status",
        ),
    )
