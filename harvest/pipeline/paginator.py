from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from harvest.config import Settings
from harvest.core.blocks import detect_block
from harvest.core.errors import FetchFailure
from harvest.core.models import RawListing, SearchRequest
from harvest.fetch import Fetcher
from harvest.sources.base import SourceAdapter

LOGGER = logging.getLogger(__name__)

STOP_MIN_RESULTS = "min-results"
STOP_PAGE_CAP = "page-cap"
STOP_EMPTY = "empty-page"
STOP_FETCH_FAILURE = "fetch-failure"


@dataclass
class BoardWalk:
    """What one board produced for one request. Partial results are still a success."""

    source: str
    listings: List[RawListing] = field(default_factory=list)
    pages_fetched: int = 0
    stop_reason: str = ""
    failure: Optional[str] = None
    blocked: Optional[str] = None


def limits_for(adapter: SourceAdapter, settings: Settings) -> tuple[int, int]:
    """(min_results, page_cap) for an adapter: its own overrides, else the mode defaults."""
    if adapter.requires_scripting:
        min_results, page_cap = settings.min_results_scripted, settings.page_cap_scripted
    else:
        min_results, page_cap = settings.min_results, settings.page_cap
    if adapter.min_results is not None:
        min_results = adapter.min_results
    if adapter.page_cap is not None:
        page_cap = adapter.page_cap
    return min_results, max(1, page_cap)


async def walk_board(
    adapter: SourceAdapter,
    fetcher: Fetcher,
    request: SearchRequest,
    *,
    min_results: int = 20,
    page_cap: int = 5,
    page_delay: float = 2.0,
) -> BoardWalk:
    """Fetch pages of one board in order until enough listings or the page cap.

    Stops early on a fetch failure (no retry) or on a page that yields
    nothing. Pages are strictly sequential: the decision to fetch page N+1
    depends on what page N returned.
    """
    walk = BoardWalk(source=adapter.name)
    page = 0
    while page < page_cap:
        url = adapter.build_url(request.role, request.location, page, request.experience)
        LOGGER.info("paginator source=%s page=%s role=%r url=%s", adapter.name, page + 1, request.role, url)
        try:
            document = await fetcher.fetch(url)
        except FetchFailure as e:
            LOGGER.warning("paginator source=%s page=%s fetch failed: %s", adapter.name, page + 1, e)
            walk.failure = str(e)
            walk.stop_reason = STOP_FETCH_FAILURE
            break
        walk.pages_fetched += 1

        found = list(adapter.extract(document))
        if not found:
            marker = detect_block(document.title(), document.text())
            if marker:
                walk.blocked = marker
                LOGGER.warning("paginator source=%s page=%s looks blocked (%s)", adapter.name, page + 1, marker)
            else:
                LOGGER.info("paginator source=%s page=%s no more results", adapter.name, page + 1)
            walk.stop_reason = STOP_EMPTY
            break

        walk.listings.extend(found)
        LOGGER.info(
            "paginator source=%s page=%s found=%s total=%s",
            adapter.name, page + 1, len(found), len(walk.listings),
        )
        if len(walk.listings) >= min_results:
            walk.stop_reason = STOP_MIN_RESULTS
            break
        page += 1
        if page >= page_cap:
            walk.stop_reason = STOP_PAGE_CAP
            break
        if page_delay > 0:
            await asyncio.sleep(page_delay)

    if not walk.stop_reason:
        walk.stop_reason = STOP_PAGE_CAP
    LOGGER.info(
        "paginator source=%s collected=%s pages=%s stop=%s",
        adapter.name, len(walk.listings), walk.pages_fetched, walk.stop_reason,
    )
    return walk
