"""
Search orchestrator - runs every registered board for one request.

1. Walks boards in fixed-size batches; boards inside a batch run
   concurrently and the whole batch is awaited before the next starts.
2. A board that raises is recorded with zero results; its siblings and the
   remaining batches carry on.
3. Merged listings are tagged with the request context, relevance-filtered
   and deduplicated into one SearchOutcome.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from harvest.config import Settings
from harvest.core.dedupe import Deduplicator
from harvest.core.models import CanonicalListing, DedupPolicy, RawListing, SearchOutcome, SearchRequest
from harvest.core.normalize import normalize_url
from harvest.core.relevance import is_relevant
from harvest.fetch import FetchEngine
from harvest.pipeline.paginator import BoardWalk, limits_for, walk_board
from harvest.sources.base import SourceAdapter

LOGGER = logging.getLogger(__name__)


def batched(items: Sequence[SourceAdapter], size: int) -> List[List[SourceAdapter]]:
    size = max(1, size)
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def canonicalize(raw: RawListing, request: SearchRequest, country: str) -> CanonicalListing:
    return CanonicalListing(
        url=raw.url,
        title=raw.title,
        source_name=raw.source_name,
        observed_at=raw.observed_at,
        normalized_url=normalize_url(raw.url),
        role=request.role,
        experience=request.experience,
        country=country,
    )


class SearchOrchestrator:
    def __init__(
        self,
        sources: Sequence[SourceAdapter],
        engine: FetchEngine,
        settings: Settings,
        dedup_policy: Optional[DedupPolicy] = None,
    ):
        self.sources = list(sources)
        self.engine = engine
        self.settings = settings
        self.dedup_policy = DedupPolicy(dedup_policy or settings.dedup_policy)

    async def _walk(self, adapter: SourceAdapter, request: SearchRequest) -> BoardWalk:
        min_results, page_cap = limits_for(adapter, self.settings)
        async with self.engine.session(adapter) as fetcher:
            return await walk_board(
                adapter,
                fetcher,
                request,
                min_results=min_results,
                page_cap=page_cap,
                page_delay=self.settings.page_delay,
            )

    async def collect(self, request: SearchRequest) -> tuple[Dict[str, List[RawListing]], Dict[str, str]]:
        """Raw listings per source (registry order) plus the errors of sources that raised."""
        by_source: Dict[str, List[RawListing]] = {a.name: [] for a in self.sources}
        errors: Dict[str, str] = {}
        batches = batched(self.sources, self.settings.batch_size)
        for idx, batch in enumerate(batches):
            LOGGER.info(
                "orchestrator batch=%s/%s sources=%s",
                idx + 1, len(batches), ",".join(a.name for a in batch),
            )
            results = await asyncio.gather(
                *(self._walk(adapter, request) for adapter in batch),
                return_exceptions=True,
            )
            for adapter, result in zip(batch, results):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                if isinstance(result, BaseException):
                    LOGGER.error(
                        "orchestrator source=%s failed: %s", adapter.name, result,
                        exc_info=(type(result), result, result.__traceback__),
                    )
                    errors[adapter.name] = f"{type(result).__name__}: {result}"
                    continue
                by_source[adapter.name] = result.listings
                if result.failure:
                    errors[adapter.name] = result.failure
            if idx + 1 < len(batches) and self.settings.source_delay > 0:
                await asyncio.sleep(self.settings.source_delay)
        return by_source, errors

    def assemble(
        self,
        request: SearchRequest,
        by_source: Dict[str, List[RawListing]],
        errors: Optional[Dict[str, str]] = None,
    ) -> SearchOutcome:
        """Tag, filter and dedup. per_source_count is post-filter, pre-dedup."""
        per_source: Dict[str, int] = {}
        relevant: List[CanonicalListing] = []
        raw_count = 0
        for name, listings in by_source.items():
            kept = 0
            for raw in listings:
                raw_count += 1
                if not is_relevant(raw.title, request.role):
                    continue
                relevant.append(canonicalize(raw, request, self.settings.country))
                kept += 1
            per_source[name] = kept

        unique = Deduplicator(self.dedup_policy).apply(relevant)
        return SearchOutcome(
            jobs=unique,
            per_source_count=per_source,
            total_jobs=len(unique),
            raw_count=raw_count,
            source_errors=dict(errors or {}),
        )

    async def search(self, request: SearchRequest) -> SearchOutcome:
        by_source, errors = await self.collect(request)
        outcome = self.assemble(request, by_source, errors)
        LOGGER.info(
            "orchestrator role=%r experience=%r raw=%s relevant=%s unique=%s policy=%s",
            request.role, request.experience, outcome.raw_count,
            sum(outcome.per_source_count.values()), outcome.total_jobs, self.dedup_policy.value,
        )
        for name, count in outcome.per_source_count.items():
            LOGGER.info("  %s: %s jobs", name, count)
        return outcome
