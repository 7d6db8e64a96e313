import unittest
from unittest import mock

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from harvest.config import Settings
from harvest.core.errors import FetchFailure
from harvest.core.models import SearchRequest
from harvest.fetch import FetchEngine
from harvest.fetch.browser import BrowserFetcher, _block_heavy_resources
from harvest.fetch.direct import DirectFetcher, make_client
from harvest.pipeline.paginator import STOP_FETCH_FAILURE, walk_board
from harvest.sources.selector import SelectorAdapter


def handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/ok":
        return httpx.Response(200, text="<html><head><title>Jobs</title></head><body>hi</body></html>")
    if path == "/redirect":
        return httpx.Response(302, headers={"Location": "https://board.test/ok"})
    if path == "/forbidden":
        return httpx.Response(403, text="nope")
    if path == "/slow":
        raise httpx.ReadTimeout("timed out", request=request)
    raise httpx.ConnectError("connection refused", request=request)


class DirectFetcherTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.client = make_client(transport=httpx.MockTransport(handler))
        self.fetcher = DirectFetcher(self.client)

    async def asyncTearDown(self):
        await self.client.aclose()

    async def test_success_returns_document(self):
        doc = await self.fetcher.fetch("https://board.test/ok")
        self.assertEqual(doc.status, 200)
        self.assertEqual(doc.title(), "Jobs")

    async def test_redirects_followed(self):
        doc = await self.fetcher.fetch("https://board.test/redirect")
        self.assertEqual(doc.url, "https://board.test/ok")

    async def test_non_2xx_is_status_failure(self):
        with self.assertRaises(FetchFailure) as ctx:
            await self.fetcher.fetch("https://board.test/forbidden")
        self.assertEqual(ctx.exception.reason, "status")
        self.assertEqual(ctx.exception.status, 403)

    async def test_timeout(self):
        with self.assertRaises(FetchFailure) as ctx:
            await self.fetcher.fetch("https://board.test/slow")
        self.assertEqual(ctx.exception.reason, "timeout")

    async def test_network_error(self):
        with self.assertRaises(FetchFailure) as ctx:
            await self.fetcher.fetch("https://board.test/down")
        self.assertEqual(ctx.exception.reason, "network")

    async def test_browser_like_headers_sent(self):
        seen = {}

        def capture(request):
            seen.update(request.headers)
            return httpx.Response(200, text="")

        async with make_client(transport=httpx.MockTransport(capture)) as client:
            await DirectFetcher(client).fetch("https://board.test/")
        self.assertIn("Mozilla/5.0", seen["user-agent"])


class FetchEngineTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.direct = SelectorAdapter("Plain", "https://plain.test/?q={role}", "a")
        self.scripted = SelectorAdapter("Heavy", "https://heavy.test/?q={role}", "a", requires_scripting=True)

    async def test_direct_sessions_share_client(self):
        client = make_client(transport=httpx.MockTransport(handler))
        engine = FetchEngine(Settings(), client=client)
        async with engine.session(self.direct) as first:
            pass
        async with engine.session(self.direct) as second:
            pass
        self.assertIsInstance(first, DirectFetcher)
        self.assertIs(first.client, second.client)
        await engine.aclose()
        # injected clients are left to their owner
        self.assertFalse(client.is_closed)
        await client.aclose()

    async def test_scripted_session_closes_browser_on_error(self):
        browser = mock.MagicMock()
        browser.aclose = mock.AsyncMock()
        settings = Settings().with_overrides(browser_timeout=12.0, settle_ms=500, scroll=False)
        with mock.patch("harvest.fetch.BrowserFetcher", return_value=browser) as factory:
            engine = FetchEngine(settings)
            with self.assertRaises(RuntimeError):
                async with engine.session(self.scripted) as fetcher:
                    self.assertIs(fetcher, browser)
                    raise RuntimeError("extractor blew up")
        browser.aclose.assert_awaited_once()
        factory.assert_called_once_with(timeout=12.0, settle_ms=500, scroll=False, wait_for_idle=False)

    async def test_scripted_session_closes_browser_on_success(self):
        browser = mock.MagicMock()
        browser.aclose = mock.AsyncMock()
        with mock.patch("harvest.fetch.BrowserFetcher", return_value=browser):
            async with FetchEngine(Settings()).session(self.scripted):
                pass
        browser.aclose.assert_awaited_once()

    async def test_close_failure_is_logged_not_raised(self):
        browser = mock.MagicMock()
        browser.aclose = mock.AsyncMock(side_effect=RuntimeError("already gone"))
        with mock.patch("harvest.fetch.BrowserFetcher", return_value=browser):
            with self.assertLogs("harvest.fetch", level="WARNING"):
                async with FetchEngine(Settings()).session(self.scripted):
                    pass


def fake_browser(pages: dict, close_error: Exception = None) -> mock.MagicMock:
    """A stand-in Playwright browser serving (status, html) per URL; exception values are raised by goto."""
    browser = mock.MagicMock()
    browser.contexts = []

    async def new_context(**kwargs):
        context = mock.MagicMock()
        context.route = mock.AsyncMock()
        context.close = mock.AsyncMock(side_effect=close_error)
        page = mock.MagicMock()
        page.url = ""
        page.wait_for_timeout = mock.AsyncMock()
        page.wait_for_load_state = mock.AsyncMock()
        page.evaluate = mock.AsyncMock()

        async def goto(url, **kw):
            value = pages[url]
            if isinstance(value, Exception):
                raise value
            status, html = value
            page.url = url
            page.content = mock.AsyncMock(return_value=html)
            return mock.MagicMock(status=status)

        page.goto = mock.AsyncMock(side_effect=goto)
        context.new_page = mock.AsyncMock(return_value=page)
        browser.contexts.append(context)
        return context

    browser.new_context = mock.AsyncMock(side_effect=new_context)
    return browser


def browser_fetcher(browser: mock.MagicMock) -> BrowserFetcher:
    fetcher = BrowserFetcher(settle_ms=0, scroll=False)
    fetcher._browser = browser
    return fetcher


class BrowserFetcherTests(unittest.IsolatedAsyncioTestCase):
    url = "https://heavy.test/jobs"

    async def test_success_returns_document_and_closes_context(self):
        browser = fake_browser({self.url: (200, "<html><head><title>Jobs</title></head></html>")})
        doc = await browser_fetcher(browser).fetch(self.url)
        self.assertEqual(doc.url, self.url)
        self.assertEqual(doc.title(), "Jobs")
        context = browser.contexts[0]
        context.route.assert_awaited_once_with("**/*", _block_heavy_resources)
        context.close.assert_awaited_once()

    async def test_scroll_evaluates_twice(self):
        browser = fake_browser({self.url: (200, "<html></html>")})
        fetcher = BrowserFetcher(settle_ms=0, scroll=True)
        fetcher._browser = browser
        await fetcher.fetch(self.url)
        page = await browser.contexts[0].new_page()
        self.assertEqual(page.evaluate.await_count, 2)

    async def test_non_2xx_is_status_failure(self):
        browser = fake_browser({self.url: (503, "unavailable")})
        with self.assertRaises(FetchFailure) as ctx:
            await browser_fetcher(browser).fetch(self.url)
        self.assertEqual(ctx.exception.reason, "status")
        self.assertEqual(ctx.exception.status, 503)
        browser.contexts[0].close.assert_awaited_once()

    async def test_navigation_timeout(self):
        browser = fake_browser({self.url: PlaywrightTimeout("Timeout 30000ms exceeded")})
        with self.assertRaises(FetchFailure) as ctx:
            await browser_fetcher(browser).fetch(self.url)
        self.assertEqual(ctx.exception.reason, "timeout")

    async def test_context_creation_error_is_fetch_failure(self):
        browser = mock.MagicMock()
        browser.new_context = mock.AsyncMock(side_effect=PlaywrightError("Browser has been closed"))
        with self.assertRaises(FetchFailure) as ctx:
            await browser_fetcher(browser).fetch(self.url)
        self.assertEqual(ctx.exception.reason, "browser")

    async def test_crashed_browser_close_error_does_not_mask_failure(self):
        browser = fake_browser(
            {self.url: PlaywrightError("Target page, context or browser has been closed")},
            close_error=PlaywrightError("Target closed"),
        )
        with self.assertLogs("harvest.fetch.browser", level="WARNING"):
            with self.assertRaises(FetchFailure) as ctx:
                await browser_fetcher(browser).fetch(self.url)
        self.assertEqual(ctx.exception.reason, "browser")
        self.assertIn("has been closed", ctx.exception.detail)

    async def test_close_error_after_success_keeps_document(self):
        browser = fake_browser({self.url: (200, "<html></html>")}, close_error=PlaywrightError("Target closed"))
        with self.assertLogs("harvest.fetch.browser", level="WARNING"):
            doc = await browser_fetcher(browser).fetch(self.url)
        self.assertEqual(doc.status, 200)

    async def test_walk_keeps_earlier_pages_when_browser_dies(self):
        adapter = SelectorAdapter(
            "Heavy", "https://heavy.test/jobs?q={role}&p={page}", "a.job", requires_scripting=True
        )
        first = "https://heavy.test/jobs?q=DevOps%20Engineer&p=1"
        second = "https://heavy.test/jobs?q=DevOps%20Engineer&p=2"
        links = "".join(f'<a class="job" href="https://heavy.test/job/{i}">DevOps Engineer {i}</a>' for i in range(4))
        browser = fake_browser(
            {
                first: (200, f"<html><body>{links}</body></html>"),
                second: PlaywrightError("Target page, context or browser has been closed"),
            },
            close_error=PlaywrightError("Target closed"),
        )
        request = SearchRequest(role="DevOps Engineer", experience="Mid Level")
        walk = await walk_board(adapter, browser_fetcher(browser), request, min_results=20, page_cap=5, page_delay=0)
        self.assertEqual(len(walk.listings), 4)
        self.assertEqual(walk.stop_reason, STOP_FETCH_FAILURE)


class BlockHeavyResourcesTests(unittest.IsolatedAsyncioTestCase):
    def route(self, resource_type: str) -> mock.MagicMock:
        route = mock.MagicMock()
        route.request.resource_type = resource_type
        route.abort = mock.AsyncMock()
        route.continue_ = mock.AsyncMock()
        return route

    async def test_heavy_resources_aborted(self):
        for kind in ("image", "font", "media", "stylesheet"):
            route = self.route(kind)
            await _block_heavy_resources(route)
            route.abort.assert_awaited_once()
            route.continue_.assert_not_awaited()

    async def test_documents_and_scripts_continue(self):
        for kind in ("document", "script", "xhr"):
            route = self.route(kind)
            await _block_heavy_resources(route)
            route.continue_.assert_awaited_once()
            route.abort.assert_not_awaited()


if __name__ == "__main__":
    unittest.main()
