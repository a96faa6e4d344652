"""Headless browser capability used by the unsubscribe executor.

The executor only sees the `BrowserAutomation` / `BrowserSession` /
`BrowserPage` protocols. `PlaywrightBrowser` is the single implementation:
each `launch()` starts an isolated Chromium context that must be closed by
the caller.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog

from inbox_organizer.config import Settings
from inbox_organizer.exceptions import BrowserAutomationError

logger = structlog.get_logger()


class BrowserPage(Protocol):
    async def goto(self, url: str, timeout_ms: int) -> None: ...

    async def screenshot(self) -> bytes: ...

    async def content(self) -> str: ...

    async def inner_text(self) -> str: ...

    async def click(self, selector: str) -> None: ...

    async def fill(self, selector: str, value: str) -> None: ...

    async def select_option(self, selector: str, value: str) -> None: ...


class BrowserSession(Protocol):
    async def new_page(self) -> BrowserPage: ...

    async def close(self) -> None: ...


class BrowserAutomation(Protocol):
    async def launch(self) -> BrowserSession: ...


class PlaywrightPage:
    """`BrowserPage` over a Playwright page."""

    def __init__(self, page: Any, action_timeout_ms: int) -> None:
        self._page = page
        self._action_timeout_ms = action_timeout_ms

    async def goto(self, url: str, timeout_ms: int) -> None:
        await self._page.goto(url, wait_until="networkidle", timeout=timeout_ms)

    async def screenshot(self) -> bytes:
        return await self._page.screenshot(type="png", full_page=True)

    async def content(self) -> str:
        return await self._page.content()

    async def inner_text(self) -> str:
        return await self._page.inner_text("body", timeout=self._action_timeout_ms)

    async def click(self, selector: str) -> None:
        await self._page.click(selector, timeout=self._action_timeout_ms)

    async def fill(self, selector: str, value: str) -> None:
        await self._page.fill(selector, value, timeout=self._action_timeout_ms)

    async def select_option(self, selector: str, value: str) -> None:
        await self._page.select_option(selector, value, timeout=self._action_timeout_ms)


class PlaywrightSession:
    """One isolated browser context plus the processes that back it."""

    def __init__(self, playwright: Any, browser: Any, context: Any, action_timeout_ms: int) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._action_timeout_ms = action_timeout_ms

    async def new_page(self) -> BrowserPage:
        page = await self._context.new_page()
        return PlaywrightPage(page, self._action_timeout_ms)

    async def close(self) -> None:
        try:
            await self._context.close()
            await self._browser.close()
        finally:
            await self._playwright.stop()


class PlaywrightBrowser:
    """Launches headless Chromium through Playwright."""

    def __init__(self, settings: Settings | None = None) -> None:
        from inbox_organizer.config import get_settings

        self.settings = settings or get_settings()

    async def launch(self) -> BrowserSession:
        """Start Chromium with a fresh context.

        Raises:
            BrowserAutomationError: If the browser cannot be started.
        """

        # Imported lazily to keep import-time cost low and tests fast.
        from playwright.async_api import async_playwright

        playwright = await async_playwright().start()
        browser = None
        try:
            browser = await playwright.chromium.launch(headless=self.settings.browser_headless)
            context = await browser.new_context()
        except Exception as exc:
            if browser is not None:
                await browser.close()
            await playwright.stop()
            logger.error("browser_launch_failed", error=str(exc))
            raise BrowserAutomationError(str(exc) or type(exc).__name__) from exc

        logger.debug("browser_launched", headless=self.settings.browser_headless)
        return PlaywrightSession(
            playwright,
            browser,
            context,
            self.settings.browser_action_timeout_ms,
        )
