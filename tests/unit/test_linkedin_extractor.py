"""Unit tests for LinkedInExtractor and LinkedInProfile.

The Playwright page is a MagicMock from the ``make_page`` fixture.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from portfolio_pipeline.core.exceptions import (
    ChallengeDetectedError,
    ProfileEvaluationError,
    ScrapeError,
)
from portfolio_pipeline.sources.linkedin.extractor import (
    LinkedInExtractor,
    LinkedInProfile,
    is_challenge_url,
    normalize_profile_url,
)
from portfolio_pipeline.sources.linkedin.session import LinkedInSession

PROFILE_URL = "https://www.linkedin.com/in/ada"

_DATA = {
    "name": "Ada Lovelace",
    "headline": "Analyst",
    "location": "London",
    "summary": "Notes on the engine",
    "skills": ["Mathematics"],
    "education": [{"school": "Home", "degree": "", "period": ""}],
    "experience": [{"title": "Analyst", "company": "Engine Co", "period": "1843", "description": ""}],
    "contact": {"email": None, "phone": None, "website": None},
}


def _session(page: MagicMock) -> LinkedInSession:
    return LinkedInSession(browser=MagicMock(), context=MagicMock(), page=page)


class TestHelpers:
    def test_normalize_adds_scheme(self) -> None:
        assert normalize_profile_url(" www.linkedin.com/in/ada ") == "https://www.linkedin.com/in/ada"
        assert normalize_profile_url(PROFILE_URL) == PROFILE_URL

    def test_challenge_urls(self) -> None:
        assert is_challenge_url("https://www.linkedin.com/checkpoint/lg/login")
        assert is_challenge_url("https://www.linkedin.com/authwall?trk=x")
        assert not is_challenge_url(PROFILE_URL)


class TestLinkedInProfile:
    def test_from_dict_accepts_alternate_keys(self) -> None:
        profile = LinkedInProfile.from_dict({"name": "Ada", "about": "Hi", "experiences": [{"title": "x"}]})

        assert profile.summary == "Hi"
        assert profile.experience == [{"title": "x"}]

    def test_missing_fields(self) -> None:
        profile = LinkedInProfile.from_dict({"name": "Ada", "headline": "Analyst"})

        assert profile.missing_fields() == ["experience", "education", "skills"]
        assert not profile.is_empty()

    def test_empty_profile(self) -> None:
        assert LinkedInProfile.from_dict({"contact": {"email": None}}).is_empty()


class TestExtractProfile:
    @pytest.mark.asyncio
    async def test_successful_extraction(self, settings, make_page, no_sleep) -> None:
        page = make_page(PROFILE_URL)
        page.evaluate.return_value = {"ok": True, "data": _DATA}
        page.query_selector.return_value = None
        extractor = LinkedInExtractor(settings, sleep=no_sleep)

        profile = await extractor.extract_profile(_session(page), "linkedin.com/in/ada")

        assert profile.to_dict() == _DATA
        assert page.goto.await_args.args[0] == "https://linkedin.com/in/ada"
        page.wait_for_selector.assert_awaited_once()
        page.reload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_closed_page_raises(self, settings, make_page, no_sleep) -> None:
        page = make_page(PROFILE_URL)
        page.is_closed.return_value = True

        with pytest.raises(ScrapeError, match="closed"):
            await LinkedInExtractor(settings, sleep=no_sleep).extract_profile(_session(page), PROFILE_URL)

    @pytest.mark.asyncio
    async def test_challenge_after_navigation(self, settings, make_page, no_sleep) -> None:
        page = make_page("https://www.linkedin.com/checkpoint/challenge/abc")

        with pytest.raises(ChallengeDetectedError) as exc_info:
            await LinkedInExtractor(settings, sleep=no_sleep).extract_profile(_session(page), PROFILE_URL)

        assert "checkpoint" in exc_info.value.url
        page.evaluate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_marker_reloads_then_extracts(
        self, settings, make_page, no_sleep
    ) -> None:
        page = make_page(PROFILE_URL)
        page.wait_for_selector.side_effect = PlaywrightTimeoutError("no top card")
        page.evaluate.return_value = {"ok": True, "data": {"name": "Ada"}}
        page.query_selector.return_value = None

        profile = await LinkedInExtractor(settings, sleep=no_sleep).extract_profile(
            _session(page), PROFILE_URL
        )

        assert page.wait_for_selector.await_count == settings.linkedin_marker_reloads
        assert page.reload.await_count == settings.linkedin_marker_reloads
        assert profile.name == "Ada"

    @pytest.mark.asyncio
    async def test_evaluation_error_raises(self, settings, make_page, no_sleep) -> None:
        page = make_page(PROFILE_URL)
        page.evaluate.return_value = {"ok": False, "error": "selector blew up"}
        page.query_selector.return_value = None

        with pytest.raises(ProfileEvaluationError, match="selector blew up"):
            await LinkedInExtractor(settings, sleep=no_sleep).extract_profile(_session(page), PROFILE_URL)

    @pytest.mark.asyncio
    async def test_contact_panel_clicked_when_present(
        self, settings, make_page, no_sleep
    ) -> None:
        page = make_page(PROFILE_URL)
        page.evaluate.return_value = {"ok": True, "data": _DATA}
        button = MagicMock()
        button.click = AsyncMock()
        page.query_selector.return_value = button

        await LinkedInExtractor(settings, sleep=no_sleep).extract_profile(_session(page), PROFILE_URL)

        button.click.assert_awaited_once()
