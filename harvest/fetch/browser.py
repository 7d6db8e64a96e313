"""
Scripted fetch mode: headless Chromium via Playwright for boards that render
their result lists with JavaScript.
"""
from __future__ import annotations

import logging
from typing import Optional

from playwright.async_api import Browser, Error as PlaywrightError, Playwright, Route
from playwright.async_api import TimeoutError as PlaywrightTimeout
from playwright.async_api import async_playwright

from harvest.core.document import Document
from harvest.core.errors import FetchFailure
from harvest.fetch.direct import BROWSER_HEADERS

LOGGER = logging.getLogger(__name__)

BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "media", "stylesheet"})


async def _block_heavy_resources(route: Route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class BrowserFetcher:
    """
    One browser per board walk, one fresh context per page fetch.

    The browser is launched lazily on the first fetch; `aclose()` must be
    called on every exit path (FetchEngine.session does this).
    """

    def __init__(
        self,
        timeout: float = 30.0,
        settle_ms: int = 2000,
        scroll: bool = True,
        wait_for_idle: bool = False,
    ):
        self.timeout_ms = int(timeout * 1000)
        self.settle_ms = settle_ms
        self.scroll = scroll
        self.wait_for_idle = wait_for_idle
        self._pw: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def _ensure_browser(self) -> Browser:
        if self._browser is None:
            self._pw = await async_playwright().start()
            self._browser = await self._pw.chromium.launch(
                headless=True,
                args=["--disable-blink-features=AutomationControlled"],
            )
        return self._browser

    async def fetch(self, url: str) -> Document:
        try:
            browser = await self._ensure_browser()
        except PlaywrightError as e:
            raise FetchFailure(url, "browser", detail=f"launch failed: {e}") from e

        context = None
        try:
            context = await browser.new_context(
                user_agent=BROWSER_HEADERS["User-Agent"],
                locale="en-US",
                viewport={"width": 1366, "height": 900},
                extra_http_headers={"Accept-Language": BROWSER_HEADERS["Accept-Language"]},
            )
            await context.route("**/*", _block_heavy_resources)
            page = await context.new_page()
            try:
                response = await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
            except PlaywrightTimeout as e:
                raise FetchFailure(url, "timeout", detail=str(e)) from e
            except PlaywrightError as e:
                raise FetchFailure(url, "browser", detail=str(e)) from e

            status = response.status if response is not None else 200
            if status < 200 or status >= 300:
                raise FetchFailure(url, "status", status=status)

            if self.wait_for_idle:
                try:
                    await page.wait_for_load_state("networkidle", timeout=self.settle_ms or 1)
                except PlaywrightTimeout:
                    LOGGER.debug("network never idled url=%s", url)
            elif self.settle_ms:
                await page.wait_for_timeout(self.settle_ms)

            if self.scroll:
                for _ in range(2):
                    await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
                    await page.wait_for_timeout(500)

            html = await page.content()
            return Document(url=page.url or url, html=html, status=status)
        except PlaywrightError as e:
            raise FetchFailure(url, "browser", detail=str(e)) from e
        finally:
            if context is not None:
                try:
                    await context.close()
                except PlaywrightError as e:
                    LOGGER.warning("browser context close failed url=%s: %s", url, e)

    async def aclose(self) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            self._browser = None
            if self._pw is not None:
                await self._pw.stop()
                self._pw = None
