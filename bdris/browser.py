"""
Headless Chromium management for the BDRIS form.

One Playwright driver per process, one Chromium process per session.
Each launched browser gets a single context and a single page carrying
the configured user-agent and Accept-Language header, plus an optional
init script that hides the usual automation fingerprints.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from bdris.config import settings

logger = logging.getLogger(__name__)

_STEALTH_SCRIPT = """
Object.defineProperty(Navigator.prototype, 'webdriver', {
    get: () => undefined,
    configurable: true,
});
Object.defineProperty(navigator, 'plugins', {
    get: () => [1, 2, 3, 4, 5],
});
Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en'],
});
if (!window.chrome) {
    window.chrome = {};
}
if (!window.chrome.runtime) {
    window.chrome.runtime = {
        connect: function() {},
        sendMessage: function() {},
    };
}
"""


@dataclass
class BrowserHandle:
    """A launched browser with its only context and page."""
    browser: Browser
    context: BrowserContext
    page: Page

    async def close(self) -> None:
        """Close the browser process. Never raises."""
        try:
            await self.browser.close()
        except Exception:
            logger.warning("Failed to close browser", exc_info=True)


class BrowserLauncher:
    """Starts the Playwright driver and launches isolated browsers."""

    def __init__(
        self,
        headless: bool | None = None,
        args: list[str] | None = None,
        user_agent: str | None = None,
        accept_language: str | None = None,
        stealth: bool | None = None,
    ):
        self._headless = settings.headless if headless is None else headless
        self._args = settings.browser_arg_list if args is None else args
        self._user_agent = user_agent or settings.user_agent
        self._accept_language = accept_language or settings.accept_language
        self._stealth = settings.stealth_enabled if stealth is None else stealth
        self._playwright: Playwright | None = None

    @property
    def is_started(self) -> bool:
        return self._playwright is not None

    async def start(self) -> None:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
            logger.info("Playwright driver started")

    async def stop(self) -> None:
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception:
                logger.warning("Error stopping Playwright", exc_info=True)
            self._playwright = None
            logger.info("Playwright driver stopped")

    async def launch(self) -> BrowserHandle:
        """Launch a fresh Chromium process and open one page.

        Launch errors propagate to the caller; nothing is retried here.
        """
        await self.start()

        browser = await self._playwright.chromium.launch(
            headless=self._headless,
            args=self._args,
        )
        try:
            context = await browser.new_context(
                user_agent=self._user_agent,
                extra_http_headers={"Accept-Language": self._accept_language},
                ignore_https_errors=True,
            )
            if self._stealth:
                await context.add_init_script(_STEALTH_SCRIPT)
            page = await context.new_page()
        except Exception:
            await browser.close()
            raise

        logger.debug("Launched browser (headless=%s, %d args)", self._headless, len(self._args))
        return BrowserHandle(browser=browser, context=context, page=page)


async def load_with_retry(
    page: Page,
    url: str,
    max_attempts: int = 3,
    timeout_ms: int = 60000,
) -> None:
    """
    Navigate ``page`` to ``url`` until DOM content has loaded.

    Every failure is retried the same way, with no backoff, up to
    ``max_attempts`` in total. When the last attempt fails its exception
    is re-raised as is.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        try:
            logger.info("Loading %s, attempt %d/%d", url, attempt, max_attempts)
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            logger.info("Page loaded successfully")
            return
        except Exception:
            if attempt == max_attempts:
                logger.error("Giving up on %s after %d attempts", url, max_attempts)
                raise
            logger.warning(
                "Page load attempt %d/%d failed, retrying", attempt, max_attempts,
                exc_info=True,
            )
