"""Session Manager: one authenticated Chromium session per worker process.

The manager is constructed once at worker start (see
``workers/runtime.py``) and injected into the LinkedIn worker.  It owns:

- the Playwright driver and the cached :class:`LinkedInSession`;
- the login flow, with anti-detection setup and human-paced credential
  entry;
- a lease (:meth:`SessionManager.lease`) that serializes every
  navigate-and-extract sequence, because all jobs share one page.

Lifecycle: :meth:`open` (login if needed), :meth:`is_valid`,
:meth:`invalidate` (drop the browser, next :meth:`acquire` logs in again),
:meth:`close` (invalidate and stop the driver).
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Callable

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Route,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright_stealth import Stealth

from portfolio_pipeline.core.exceptions import SessionAuthError
from portfolio_pipeline.sources.linkedin.config import (
    BLOCKED_RESOURCE_TYPES,
    BLOCKED_URL_PATTERN,
    INIT_SCRIPT,
    LAUNCH_ARGS,
    LINKEDIN_HOME_URL,
    LINKEDIN_LOGIN_URL,
    LOGGED_IN_SELECTOR,
    LOGIN_FAILURE_URL_MARKERS,
    MAX_LOGGED_REQUEST_FAILURES,
    PASSWORD_SELECTOR,
    SUBMIT_SELECTOR,
    USER_AGENTS,
    USERNAME_SELECTOR,
    VIEWPORT,
)
from portfolio_pipeline.sources.linkedin.humanize import (
    Sleep,
    click_at_random_point,
    human_type,
    random_delay,
    random_mouse_movements,
    random_scroll,
)

logger = logging.getLogger(__name__)


@dataclass
class LinkedInSession:
    """A live browser, its context, and the single page all jobs drive."""

    browser: Browser
    context: BrowserContext
    page: Page
    created_at: float = field(default_factory=time.monotonic)

    def is_valid(self) -> bool:
        return not self.page.is_closed() and self.browser.is_connected()


async def route_request(route: Route) -> None:
    """Abort images, media, websockets and ad/analytics calls."""
    request = route.request
    if (
        request.resource_type in BLOCKED_RESOURCE_TYPES
        or BLOCKED_URL_PATTERN.search(request.url)
    ):
        await route.abort()
    else:
        await route.continue_()


class PageLogFilter:
    """Forwards page console output to logging once per distinct message."""

    def __init__(self, max_request_failures: int = MAX_LOGGED_REQUEST_FAILURES) -> None:
        self._seen: set[str] = set()
        self._request_failures = 0
        self._max_request_failures = max_request_failures

    def on_console(self, message: Any) -> None:
        text = message.text
        kind = message.type
        if "Failed to load resource" not in text and kind not in ("error", "warning"):
            return
        if text in self._seen:
            return
        self._seen.add(text)
        logger.debug("linkedin page console [%s]: %s", kind, text)

    def on_page_error(self, error: Any) -> None:
        text = str(error)
        if text in self._seen:
            return
        self._seen.add(text)
        logger.debug("linkedin page error: %s", text)

    def on_request_failed(self, request: Any) -> None:
        self._request_failures += 1
        if self._request_failures <= self._max_request_failures:
            logger.debug(
                "linkedin request failed: %s %s", request.url, request.failure or "request failed"
            )
        elif self._request_failures == self._max_request_failures + 1:
            logger.debug("linkedin request failed: further failures suppressed")


async def save_screenshot(page: Page, settings: Any, label: str) -> Path | None:
    """Write a full-page screenshot under ``settings.screenshot_dir``.

    Diagnostics only: any failure is logged at DEBUG and ``None`` returned.
    """
    if not settings.save_screenshots:
        return None
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
    path = Path(settings.screenshot_dir) / f"{label}-{stamp}.png"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        await page.screenshot(path=str(path), full_page=True)
    except (PlaywrightError, OSError) as exc:
        logger.debug("linkedin: screenshot %s failed: %s", label, exc)
        return None
    return path


class SessionManager:
    """Owns the process-wide authenticated LinkedIn session.

    Args:
        settings: Application settings (credentials, delays, browser flags).
        playwright_factory: Returns an object whose ``start()`` coroutine
            yields a Playwright driver.  Defaults to ``async_playwright``.
        sleep: Coroutine used for every human-like pause.
    """

    def __init__(
        self,
        settings: Any,
        *,
        playwright_factory: Callable[[], Any] = async_playwright,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._playwright_factory = playwright_factory
        self._sleep = sleep
        self._playwright: Any = None
        self._session: LinkedInSession | None = None
        self._login_lock = asyncio.Lock()
        self._lease_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> LinkedInSession:
        return await self.acquire()

    async def acquire(self) -> LinkedInSession:
        """Return the cached session, logging in only if there is none.

        A session whose page has been closed is torn down and replaced.

        Raises:
            SessionAuthError: Credentials are missing or every login
                attempt failed.
        """
        async with self._login_lock:
            if self.is_valid():
                return self._session  # type: ignore[return-value]
            if self._session is not None:
                logger.warning("linkedin: cached session is no longer usable; re-authenticating")
                await self._teardown()
            self._session = await self._login()
            return self._session

    def is_valid(self) -> bool:
        return self._session is not None and self._session.is_valid()

    async def invalidate(self) -> None:
        """Drop the cached session.  The next :meth:`acquire` logs in again."""
        async with self._login_lock:
            await self._teardown()

    async def close(self) -> None:
        """Close the browser and stop the Playwright driver."""
        await self.invalidate()
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except PlaywrightError as exc:
                logger.debug("linkedin: playwright stop failed: %s", exc)
            self._playwright = None

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[LinkedInSession]:
        """Hold exclusive use of the shared page for one job.

        Usage::

            async with manager.lease() as session:
                profile = await extractor.extract_profile(session, url)
        """
        async with self._lease_lock:
            yield await self.acquire()

    async def prepare_for_retry(self) -> LinkedInSession:
        """Reset the shared page before another extraction attempt.

        A timed-out attempt may leave a navigation in flight; the page is
        pointed at ``about:blank`` so the next attempt starts clean.  A
        session found closed is replaced.
        """
        if self.is_valid():
            try:
                await self._session.page.goto("about:blank")  # type: ignore[union-attr]
            except PlaywrightError as exc:
                logger.debug("linkedin: page reset failed: %s", exc)
        return await self.acquire()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _teardown(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        try:
            await session.browser.close()
        except PlaywrightError as exc:
            logger.debug("linkedin: browser close failed: %s", exc)

    async def _ensure_playwright(self) -> Any:
        if self._playwright is None:
            self._playwright = await self._playwright_factory().start()
        return self._playwright

    async def _pause(self, min_ms: int, max_ms: int) -> None:
        await random_delay(min_ms, max_ms, sleep=self._sleep)

    async def _login(self) -> LinkedInSession:
        settings = self._settings
        if not settings.has_linkedin_credentials:
            raise SessionAuthError("Missing LINKEDIN_EMAIL or LINKEDIN_PASSWORD", attempts=0)

        max_attempts = settings.linkedin_login_max_attempts
        last_error: Exception | None = None
        for attempt in range(1, max_attempts + 1):
            session: LinkedInSession | None = None
            try:
                session = await self._launch()
                await self._sign_in(session.page)
                logger.info("linkedin: login successful (attempt %d/%d)", attempt, max_attempts)
                return session
            except (PlaywrightError, SessionAuthError) as exc:
                last_error = exc
                logger.warning("linkedin: login attempt %d failed: %s", attempt, exc)
                if session is not None:
                    await save_screenshot(session.page, settings, f"login-error-{attempt}")
                    try:
                        await session.browser.close()
                    except PlaywrightError as close_exc:
                        logger.debug("linkedin: browser close failed: %s", close_exc)
                if attempt < max_attempts:
                    await self._sleep(float(2**attempt))

        raise SessionAuthError(
            f"Failed to login after {max_attempts} attempts. Last error: {last_error}",
            attempts=max_attempts,
        )

    async def _launch(self) -> LinkedInSession:
        settings = self._settings
        playwright = await self._ensure_playwright()
        launch_kwargs: dict[str, Any] = {"headless": settings.headless, "args": LAUNCH_ARGS}
        if settings.chrome_path:
            launch_kwargs["executable_path"] = settings.chrome_path
        browser = await playwright.chromium.launch(**launch_kwargs)
        try:
            user_agent = random.choice(USER_AGENTS)
            context = await browser.new_context(
                user_agent=user_agent,
                viewport=VIEWPORT,
                locale="en-US",
            )
            await context.add_init_script(INIT_SCRIPT)
            page = await context.new_page()
            await Stealth().apply_stealth_async(page)
            page.set_default_navigation_timeout(settings.linkedin_navigation_timeout_ms)
            await page.route("**/*", route_request)

            log_filter = PageLogFilter()
            page.on("console", log_filter.on_console)
            page.on("pageerror", log_filter.on_page_error)
            page.on("requestfailed", log_filter.on_request_failed)
        except PlaywrightError:
            await browser.close()
            raise
        logger.debug("linkedin: launched browser with user agent %s", user_agent)
        return LinkedInSession(browser=browser, context=context, page=page)

    async def _sign_in(self, page: Page) -> None:
        settings = self._settings
        await self._pause(2_000, 4_000)
        await page.goto(LINKEDIN_HOME_URL, wait_until="networkidle")
        await self._pause(1_000, 2_000)
        await page.goto(LINKEDIN_LOGIN_URL, wait_until="networkidle")
        await self._pause(1_500, 3_000)

        await human_type(
            page,
            USERNAME_SELECTOR,
            settings.linkedin_email,
            settings.type_min_delay_ms,
            settings.type_max_delay_ms,
            sleep=self._sleep,
        )
        await self._pause(1_000, 2_000)
        await human_type(
            page,
            PASSWORD_SELECTOR,
            settings.linkedin_password,
            settings.type_min_delay_ms,
            settings.type_max_delay_ms,
            sleep=self._sleep,
        )
        await self._pause(1_000, 2_000)
        await random_mouse_movements(page)

        try:
            async with page.expect_navigation(wait_until="networkidle"):
                await click_at_random_point(page, SUBMIT_SELECTOR)
        except PlaywrightTimeoutError:
            await page.wait_for_selector(LOGGED_IN_SELECTOR)

        await random_scroll(page)
        await self._pause(3_000, 5_000)

        url = page.url
        if any(marker in url for marker in LOGIN_FAILURE_URL_MARKERS):
            raise SessionAuthError(f"Login failed - redirected to {url}")
