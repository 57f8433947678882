"""LinkedIn source configuration: URLs, selectors, browser flags, scripts.

Selectors target LinkedIn's public profile markup and will drift over time;
they are kept here so that a markup change touches one file.
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------

LINKEDIN_HOME_URL: str = "https://www.linkedin.com"
"""Visited before the login page, as a person would."""

LINKEDIN_LOGIN_URL: str = "https://www.linkedin.com/login"

LOGIN_FAILURE_URL_MARKERS: tuple[str, ...] = ("/login", "/checkpoint")
"""Post-submit URL fragments meaning authentication did not succeed."""

CHALLENGE_URL_MARKERS: tuple[str, ...] = ("checkpoint", "authwall")
"""Profile-navigation URL fragments meaning a verification wall was hit."""

# ---------------------------------------------------------------------------
# Selectors
# ---------------------------------------------------------------------------

USERNAME_SELECTOR: str = "#username"
PASSWORD_SELECTOR: str = "#password"
SUBMIT_SELECTOR: str = 'button[type="submit"]'
LOGGED_IN_SELECTOR: str = 'input[role="combobox"]'
"""Global search box, present only for authenticated sessions."""

PROFILE_MARKER_SELECTOR: str = "h1, .pv-top-card, .text-heading-xlarge"
"""Top-card element that signals a rendered profile."""

CONTACT_BUTTON_SELECTOR: str = (
    'a[data-control-name="contact_see_more"], '
    'button[data-control-name="contact_see_more"], '
    ".pv-top-card__contact-info"
)

# ---------------------------------------------------------------------------
# Browser launch
# ---------------------------------------------------------------------------

LAUNCH_ARGS: list[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--start-maximized",
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-notifications",
    "--disable-popup-blocking",
    "--disable-extensions",
    "--disable-infobars",
    "--ignore-certificate-errors",
    "--window-size=1920,1080",
    "--lang=en-US,en",
]

VIEWPORT: dict[str, int] = {"width": 1366, "height": 768}

USER_AGENTS: list[str] = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/141.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/139.0.0.0 Safari/537.36 Edg/139.0.0.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/141.0.0.0 Safari/537.36",
]
"""Desktop Chromium user agents; one is picked at random per browser launch."""

BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset({"image", "media", "websocket"})
"""Stylesheets and fonts are kept: LinkedIn layout checks depend on them."""

BLOCKED_URL_PATTERN: re.Pattern[str] = re.compile(
    r"doubleclick|google-analytics|googlesyndication|adsystem|adservice|tracking|analytics"
)

MAX_LOGGED_REQUEST_FAILURES: int = 5
"""Failed requests logged per page before further failures are suppressed."""

INIT_SCRIPT: str = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
window.chrome = window.chrome || { app: {}, runtime: {}, loadTimes() {}, csi() {} };
Object.defineProperty(navigator, 'plugins', {
  get: () => [
    { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer' },
    { name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai' },
    { name: 'Native Client', filename: 'internal-nacl-plugin' },
  ],
});
"""
"""Injected before any page script runs; complements playwright-stealth."""

# ---------------------------------------------------------------------------
# In-page scripts
# ---------------------------------------------------------------------------

SCROLL_SCRIPT: str = """
async (steps) => {
  const height = document.body.scrollHeight;
  for (let i = 0; i < steps; i++) {
    window.scrollTo({ top: Math.floor(Math.random() * height), behavior: 'smooth' });
    await new Promise((r) => setTimeout(r, Math.random() * 2000 + 1000));
  }
}
"""

EXTRACT_PROFILE_SCRIPT: str = """
() => {
  try {
    const pickText = (sel, root = document) =>
      root.querySelector(sel)?.innerText?.trim() || null;
    const pickAll = (sel) =>
      Array.from(document.querySelectorAll(sel));

    const name = pickText('h1[class*="break-words"], h1, .text-heading-xlarge') || '';
    const headline = pickText(
      '.text-body-medium.break-words, .pv-top-card--list .text-body-medium, .pv-top-card__occupation'
    ) || '';
    const location = pickText(
      '.pv-top-card--list-bullet, .pv-top-card__location, .t-16.t-black--light'
    ) || '';
    const summary = pickText(
      '#about .pv-about__summary-text, #about .lt-line-clamp__raw-line, .pv-about__summary-text'
    ) || '';

    const skills = pickAll(
      '.pv-skill-category-entity__name, .skill-pill, .pv-skill-entity__skill-name'
    ).map((n) => n.innerText && n.innerText.trim()).filter(Boolean);

    const education = pickAll(
      '#education .pv-education-entity, .pv-education-entity, .education-section li'
    ).map((el) => ({
      school: pickText('h3', el) || pickText('.pv-entity__school-name', el) || '',
      degree: pickText('.pv-entity__degree-name', el) || '',
      period: pickText('.pv-entity__dates', el) || '',
    }));

    const experience = pickAll(
      '.experience-section .pv-entity__position-group-pager li, .pv-position-entity, ' +
      '.pv-entity__position-group-item, .pv-profile-section__card-item'
    ).map((el) => ({
      title: pickText('h3', el) || pickText('.t-bold', el) || '',
      company: pickText('.pv-entity__secondary-title', el) ||
        pickText('.pv-entity__company-name', el) || '',
      period: pickText('.pv-entity__date-range span:nth-child(2)', el) || '',
      description: pickText('.pv-entity__description, .pv-entity__summary', el) || '',
    }));

    const root = document.querySelector('.pv-contact-info__contact-type') || document;
    const contact = {
      email: pickText('.ci-email a', root),
      phone: pickText('.ci-phone span', root),
      website: pickText('.ci-websites a', root),
    };

    return {
      ok: true,
      data: { name, headline, location, summary, skills, education, experience, contact },
    };
  } catch (e) {
    return { ok: false, error: e && e.message ? e.message : String(e) };
  }
}
"""
"""Returns ``{ok: true, data}`` or ``{ok: false, error}``; never throws."""
