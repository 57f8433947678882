"""Pydantic schemas for job queue messages.

Messages travel as JSON with camelCase keys::

    {"studentProfileId": "...", "githubUrl": "...", "crawlJobId": "..."}
    {"studentProfileId": "...", "linkedinUrl": "...", "crawlJobId": "..."}
    {"userId": "..."}

Fields are optional at the schema level so that a malformed message still
parses; the worker calls :meth:`CrawlJobMessage.missing_fields` and fails the
job fast instead of letting Celery reject it before any state is recorded.
"""

from __future__ import annotations

from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field


class CrawlJobMessage(BaseModel):
    """Fields common to both source job messages."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    student_profile_id: Optional[str] = Field(default=None, alias="studentProfileId")
    crawl_job_id: Optional[str] = Field(default=None, alias="crawlJobId")

    url_alias: ClassVar[str] = "sourceUrl"

    @property
    def source_url(self) -> Optional[str]:
        raise NotImplementedError

    def missing_fields(self) -> list[str]:
        """Return the wire names of empty required fields, in message order."""
        missing: list[str] = []
        if not self.student_profile_id:
            missing.append("studentProfileId")
        if not self.source_url:
            missing.append(self.url_alias)
        if not self.crawl_job_id:
            missing.append("crawlJobId")
        return missing

    def to_payload(self) -> dict[str, Optional[str]]:
        """Serialize with wire (camelCase) keys for ``send_task``."""
        return self.model_dump(by_alias=True)


class GithubJobMessage(CrawlJobMessage):
    """Message consumed from the ``github`` queue."""

    github_url: Optional[str] = Field(default=None, alias="githubUrl")

    url_alias: ClassVar[str] = "githubUrl"

    @property
    def source_url(self) -> Optional[str]:
        return self.github_url


class LinkedinJobMessage(CrawlJobMessage):
    """Message consumed from the ``linkedin`` queue."""

    linkedin_url: Optional[str] = Field(default=None, alias="linkedinUrl")

    url_alias: ClassVar[str] = "linkedinUrl"

    @property
    def source_url(self) -> Optional[str]:
        return self.linkedin_url


class AggregationJobMessage(BaseModel):
    """Message consumed from the ``portfolio`` queue."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(alias="userId")
