from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Protocol

import httpx

from harvest.config import Settings
from harvest.core.document import Document
from harvest.sources.base import SourceAdapter

from .browser import BrowserFetcher
from .direct import DirectFetcher, make_client

LOGGER = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(self, url: str) -> Document: ...


class FetchEngine:
    """Hands out a fetcher in the mode an adapter declares.

    Direct-mode fetchers share one HTTP client; scripted-mode fetchers get a
    browser of their own that is closed when the session block exits, on
    success and failure alike.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client
        self._owns_client = client is None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = make_client(timeout=self.settings.fetch_timeout)
        return self._client

    @asynccontextmanager
    async def session(self, adapter: SourceAdapter) -> AsyncIterator[Fetcher]:
        if not adapter.requires_scripting:
            yield DirectFetcher(self._http())
            return
        fetcher = BrowserFetcher(
            timeout=self.settings.browser_timeout,
            settle_ms=self.settings.settle_ms,
            scroll=self.settings.scroll,
            wait_for_idle=self.settings.wait_for_idle,
        )
        try:
            yield fetcher
        finally:
            try:
                await fetcher.aclose()
            except Exception:
                LOGGER.warning("browser close failed source=%s", adapter.name, exc_info=True)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


__all__ = ["Fetcher", "FetchEngine", "DirectFetcher", "BrowserFetcher", "make_client"]
