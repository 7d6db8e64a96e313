from __future__ import annotations

import logging
from typing import Optional

import httpx

from harvest.core.document import Document
from harvest.core.errors import FetchFailure

LOGGER = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}


def make_client(timeout: float = 15.0, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        headers=BROWSER_HEADERS,
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
        transport=transport,
    )


class DirectFetcher:
    """Single request/response per page. No retries; the caller decides what a failure means."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def fetch(self, url: str) -> Document:
        try:
            resp = await self.client.get(url)
        except httpx.TimeoutException as e:
            raise FetchFailure(url, "timeout", detail=str(e)) from e
        except httpx.HTTPError as e:
            raise FetchFailure(url, "network", detail=str(e) or type(e).__name__) from e

        if resp.status_code < 200 or resp.status_code >= 300:
            raise FetchFailure(url, "status", status=resp.status_code)
        return Document(url=str(resp.url), html=resp.text or "", status=resp.status_code)
