"""Headless browser page fetching.

Every ``fetch`` launches its own Playwright Chromium session and closes it on
every exit path. Sessions are never pooled or reused across calls.

Usage:
    html = await PageFetcher().fetch("https://www.ontario.ca/laws/statute/00e41")
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from lexingest.config import CONFIG
from lexingest.errors import FetchBlocked, FetchError, FetchTimeout

logger = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
}

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]

# Runs before any page script
HIDE_WEBDRIVER_SCRIPT = "Object.defineProperty(navigator, 'webdriver', { get: () => undefined });"

BLOCKED_STATUSES = frozenset({401, 403})


@dataclass
class FetcherConfig:
    """Configuration for headless browser sessions."""
    headless: bool = True
    navigation_timeout_ms: int = CONFIG.navigation_timeout_ms
    settle_seconds: float = CONFIG.render_settle_seconds
    viewport_width: int = 1920
    viewport_height: int = 1080
    user_agent: str = DEFAULT_USER_AGENT
    extra_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))


class PageFetcher:
    """Retrieves fully rendered HTML while evading basic bot detection."""

    def __init__(
        self,
        config: FetcherConfig | None = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self.config = config or FetcherConfig()
        self._playwright_factory = playwright_factory

    async def fetch(self, url: str) -> str:
        """Return the rendered document at ``url``.

        Raises:
            FetchBlocked: The site answered 401/403 to the automated session
            FetchTimeout: Navigation did not settle in time
            FetchError: Any other navigation or browser session failure
        """
        logger.info("fetch.start", url=url)
        try:
            async with self._playwright_factory() as pw:
                browser = await pw.chromium.launch(headless=self.config.headless, args=LAUNCH_ARGS)
                try:
                    html = await self._render(browser, url)
                finally:
                    await browser.close()
                    logger.debug("fetch.session_closed", url=url)
        except PlaywrightError as e:
            # Launch, context setup or teardown; navigation is classified in _render
            raise FetchError(url=url, reason=_first_line(e, "browser session failed")) from e

        logger.info("fetch.done", url=url, kb=round(len(html) / 1024, 1))
        return html

    async def _render(self, browser: Any, url: str) -> str:
        context = await browser.new_context(
            user_agent=self.config.user_agent,
            viewport={"width": self.config.viewport_width, "height": self.config.viewport_height},
            extra_http_headers=self.config.extra_headers,
            locale="en-US",
        )
        await context.add_init_script(HIDE_WEBDRIVER_SCRIPT)
        page = await context.new_page()

        try:
            response = await page.goto(
                url,
                wait_until="networkidle",
                timeout=self.config.navigation_timeout_ms,
            )
        except PlaywrightTimeoutError as e:
            raise FetchTimeout(url=url, reason=_first_line(e, "navigation timeout")) from e
        except PlaywrightError as e:
            if "403" in str(e):
                raise FetchBlocked(url=url) from e
            raise FetchError(url=url, reason=_first_line(e, "navigation failed")) from e

        if response is not None and response.status in BLOCKED_STATUSES:
            logger.warning("fetch.blocked", url=url, status=response.status)
            raise FetchBlocked(
                url=url,
                reason=f"{response.status} {response.status_text or 'Forbidden'}".strip(),
                status=response.status,
            )

        # Deferred client-side rendering
        await asyncio.sleep(self.config.settle_seconds)

        try:
            return await page.content()
        except PlaywrightError as e:
            raise FetchError(url=url, reason=f"could not read rendered document: {_first_line(e, 'no detail')}") from e


def _first_line(error: Exception, fallback: str) -> str:
    text = str(error)
    return text.splitlines()[0] if text else fallback
