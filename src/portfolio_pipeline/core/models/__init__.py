"""SQLAlchemy ORM models for the portfolio pipeline.

All models are imported here so that Alembic can discover them via
``Base.metadata`` and application code can write
``from portfolio_pipeline.core.models import CrawlJob``.
"""

from __future__ import annotations

from portfolio_pipeline.core.models.base import Base, TimestampMixin
from portfolio_pipeline.core.models.crawl import CrawlJob
from portfolio_pipeline.core.models.portfolio import Portfolio
from portfolio_pipeline.core.models.profiles import StudentProfile

__all__ = [
    "Base",
    "TimestampMixin",
    "CrawlJob",
    "Portfolio",
    "StudentProfile",
]
