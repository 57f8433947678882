"""Browser-based LinkedIn profile extractor.

:class:`LinkedInExtractor` drives the shared page of a
:class:`~portfolio_pipeline.sources.linkedin.session.LinkedInSession`.  It is
not safe to call concurrently on the same session; callers hold
``SessionManager.lease()`` for the duration of a job.

Two failure modes are kept apart:

- a redirect to a checkpoint/authwall raises
  :class:`~portfolio_pipeline.core.exceptions.ChallengeDetectedError`;
- a missing profile marker is only logged, and extraction proceeds on a
  best-effort basis.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from portfolio_pipeline.core.exceptions import (
    ChallengeDetectedError,
    ProfileEvaluationError,
    ScrapeError,
)
from portfolio_pipeline.sources.linkedin.config import (
    CHALLENGE_URL_MARKERS,
    CONTACT_BUTTON_SELECTOR,
    EXTRACT_PROFILE_SCRIPT,
    PROFILE_MARKER_SELECTOR,
)
from portfolio_pipeline.sources.linkedin.humanize import (
    Sleep,
    random_delay,
    random_mouse_movements,
    random_scroll,
)
from portfolio_pipeline.sources.linkedin.session import LinkedInSession, save_screenshot

logger = logging.getLogger(__name__)


def normalize_profile_url(url: str) -> str:
    """Strip whitespace and prepend ``https://`` when no scheme is given."""
    url = url.strip()
    if not url.lower().startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


def is_challenge_url(url: str) -> bool:
    return any(marker in url for marker in CHALLENGE_URL_MARKERS)


@dataclass
class LinkedInProfile:
    """Normalized LinkedIn profile as stored in ``raw_data.linkedin``."""

    name: str = ""
    headline: str = ""
    location: str = ""
    summary: str = ""
    skills: list[str] = field(default_factory=list)
    education: list[dict[str, str]] = field(default_factory=list)
    experience: list[dict[str, str]] = field(default_factory=list)
    contact: dict[str, str | None] = field(default_factory=dict)

    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = (
        "name",
        "headline",
        "experience",
        "education",
        "skills",
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LinkedInProfile":
        return cls(
            name=data.get("name") or "",
            headline=data.get("headline") or "",
            location=data.get("location") or "",
            summary=data.get("summary") or data.get("about") or "",
            skills=list(data.get("skills") or []),
            education=list(data.get("education") or []),
            experience=list(data.get("experience") or data.get("experiences") or []),
            contact=dict(data.get("contact") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def is_empty(self) -> bool:
        return not any(
            (self.name, self.headline, self.summary, self.skills, self.education, self.experience)
        )

    def missing_fields(self) -> list[str]:
        """Names of required fields the page did not yield."""
        return [name for name in self.REQUIRED_FIELDS if not getattr(self, name)]


class ProfileExtractor(Protocol):
    """Capability the LinkedIn worker depends on; mocked in tests."""

    async def extract_profile(self, session: LinkedInSession, url: str) -> LinkedInProfile:
        ...


class LinkedInExtractor:
    """Navigates the shared page to a profile and evaluates the extraction script.

    Args:
        settings: Application settings (delays, marker timeout, reloads).
        sleep: Coroutine used for every human-like pause.
    """

    def __init__(self, settings: Any, *, sleep: Sleep = asyncio.sleep) -> None:
        self._settings = settings
        self._sleep = sleep

    async def _pause(self, min_ms: int | None = None, max_ms: int | None = None) -> None:
        await random_delay(
            self._settings.linkedin_min_delay_ms if min_ms is None else min_ms,
            self._settings.linkedin_max_delay_ms if max_ms is None else max_ms,
            sleep=self._sleep,
        )

    async def extract_profile(self, session: LinkedInSession, url: str) -> LinkedInProfile:
        """Extract the profile at *url* using the session's page.

        Raises:
            ChallengeDetectedError: Navigation landed on a verification page.
            ProfileEvaluationError: The in-page script reported an error.
            ScrapeError: The page was closed or could not be evaluated.
        """
        page = session.page
        if page.is_closed():
            raise ScrapeError("Session page is closed")

        target = normalize_profile_url(url)
        await self._pause(2_000, 4_000)
        try:
            await page.goto(
                target,
                wait_until="domcontentloaded",
                timeout=self._settings.linkedin_navigation_timeout_ms,
            )
        except PlaywrightError as exc:
            logger.warning("linkedin: navigation to %s did not settle: %s", target, exc)
        self._raise_if_challenge(page)
        await self._pause(2_000, 4_000)

        if not await self._wait_for_marker(page):
            logger.warning(
                "linkedin: profile marker not found for %s; extracting best-effort", target
            )
        self._raise_if_challenge(page)

        await random_scroll(page)
        await self._pause(1_500, 3_000)
        await random_mouse_movements(page)
        await self._pause()
        await self._expand_contact_info(page)

        try:
            result = await page.evaluate(EXTRACT_PROFILE_SCRIPT)
        except PlaywrightError as exc:
            raise ScrapeError(f"Profile evaluation failed: {exc}") from exc

        if not result or not result.get("ok"):
            await save_screenshot(page, self._settings, "linkedin-eval-error")
            error = result.get("error") if result else None
            raise ProfileEvaluationError(f"Profile evaluation failed: {error}")

        await save_screenshot(page, self._settings, "linkedin-crawl-success")
        return LinkedInProfile.from_dict(result.get("data") or {})

    def _raise_if_challenge(self, page: Page) -> None:
        if is_challenge_url(page.url):
            raise ChallengeDetectedError("Hit LinkedIn verification page", url=page.url)

    async def _wait_for_marker(self, page: Page) -> bool:
        reloads = self._settings.linkedin_marker_reloads
        for index in range(reloads):
            try:
                await page.wait_for_selector(
                    PROFILE_MARKER_SELECTOR,
                    timeout=self._settings.linkedin_marker_timeout_ms,
                )
                return True
            except PlaywrightTimeoutError as exc:
                logger.warning(
                    "linkedin: top card not found (%d/%d): %s", index + 1, reloads, exc
                )
            self._raise_if_challenge(page)
            try:
                await page.reload(
                    wait_until="domcontentloaded",
                    timeout=self._settings.linkedin_navigation_timeout_ms,
                )
            except PlaywrightError as exc:
                logger.warning("linkedin: reload %d failed: %s", index + 1, exc)
            await self._pause(2_000 + index * 1_000, 3_500 + index * 1_000)
        return False

    async def _expand_contact_info(self, page: Page) -> None:
        try:
            button = await page.query_selector(CONTACT_BUTTON_SELECTOR)
            if button is not None:
                await button.click()
                await page.wait_for_timeout(800)
        except PlaywrightError as exc:
            logger.debug("linkedin: contact panel not expanded: %s", exc)
