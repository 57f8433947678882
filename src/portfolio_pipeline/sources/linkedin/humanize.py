"""Human-like interaction helpers for the LinkedIn browser session.

Each helper takes the Playwright ``Page`` it drives and an optional
``sleep`` coroutine so tests can run without real pauses.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable

from playwright.async_api import Page

from portfolio_pipeline.sources.linkedin.config import SCROLL_SCRIPT, VIEWPORT

Sleep = Callable[[float], Awaitable[Any]]


async def random_delay(
    min_ms: int,
    max_ms: int,
    *,
    sleep: Sleep = asyncio.sleep,
) -> float:
    """Sleep for a uniformly random duration in ``[min_ms, max_ms]``.

    Returns:
        The number of seconds slept.
    """
    seconds = random.randint(min_ms, max_ms) / 1000
    await sleep(seconds)
    return seconds


async def human_type(
    page: Page,
    selector: str,
    text: str,
    min_ms: int,
    max_ms: int,
    *,
    sleep: Sleep = asyncio.sleep,
) -> None:
    """Type *text* into *selector* one character at a time."""
    field = page.locator(selector)
    await field.wait_for(state="visible")
    await field.click()
    for char in text:
        await field.press_sequentially(char)
        await random_delay(min_ms, max_ms, sleep=sleep)


async def random_scroll(page: Page) -> None:
    """Scroll to 3-7 random offsets with in-page pauses between them."""
    await page.evaluate(SCROLL_SCRIPT, random.randint(3, 7))


async def random_mouse_movements(page: Page) -> None:
    """Move the real mouse cursor through 3-8 random viewport points."""
    viewport = page.viewport_size or VIEWPORT
    for _ in range(random.randint(3, 8)):
        await page.mouse.move(
            random.randint(0, viewport["width"] - 1),
            random.randint(0, viewport["height"] - 1),
            steps=random.randint(5, 15),
        )


async def click_at_random_point(page: Page, selector: str) -> None:
    """Click somewhere inside the element's box rather than its centre."""
    target = page.locator(selector).first
    box = await target.bounding_box()
    if box is None:
        await target.click()
        return
    await page.mouse.click(
        box["x"] + box["width"] * random.random(),
        box["y"] + box["height"] * random.random(),
    )
