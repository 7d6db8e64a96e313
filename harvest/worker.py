"""
Queue worker: pulls one search request at a time, runs the orchestrator,
persists the outcome, and exits once the queue has stayed empty for a
bounded number of consecutive polls (a scheduler relaunches it later).
"""
from __future__ import annotations

import asyncio
import itertools
import logging
import os
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from harvest.config import Settings
from harvest.core.errors import QueueUnavailable
from harvest.core.models import BatchResult, SearchOutcome, SearchRequest, utcnow
from harvest.db.crud import record_search_run, upsert_jobs
from harvest.db.session import connect_store, get_session, make_session_factory
from harvest.fetch import FetchEngine
from harvest.pipeline.orchestrator import SearchOrchestrator
from harvest.sources import load_sources
from harvest.sources.base import SourceAdapter
from harvest.workqueue import RedisWorkQueue, WorkQueue, decode_request

LOGGER = logging.getLogger(__name__)


async def _pause(seconds: float) -> None:
    if seconds > 0:
        await asyncio.sleep(seconds)


class WorkerContext:
    """Queue and store handles for one worker process.

    Build it, `await connect()` before the loop (fails fast with
    QueueUnavailable / StoreUnavailable), `await close()` afterwards. Also
    usable as an async context manager.
    """

    def __init__(
        self,
        settings: Settings,
        queue: Optional[WorkQueue] = None,
        sources: Optional[Sequence[SourceAdapter]] = None,
        fetch_engine: Optional[FetchEngine] = None,
        engine: Optional[Engine] = None,
    ):
        self.settings = settings
        self.queue: WorkQueue = queue if queue is not None else RedisWorkQueue(settings.redis_url, settings.queue_key)
        self.sources = list(sources) if sources is not None else load_sources(settings.sources_file)
        self.fetch_engine = fetch_engine or FetchEngine(settings)
        self.engine = engine
        self._owns_engine = engine is None
        self.session_factory: Optional[sessionmaker] = make_session_factory(engine) if engine is not None else None

    async def connect(self) -> None:
        await self.queue.connect()
        if self.engine is None:
            self.engine = await asyncio.to_thread(connect_store, self.settings.database_url)
            self.session_factory = make_session_factory(self.engine)
        LOGGER.info("worker ready pid=%s sources=%s", os.getpid(), len(self.sources))

    async def close(self) -> None:
        try:
            await self.fetch_engine.aclose()
            await self.queue.close()
        finally:
            if self.engine is not None and self._owns_engine:
                self.engine.dispose()

    async def __aenter__(self) -> "WorkerContext":
        await self.connect()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    def orchestrator(self) -> SearchOrchestrator:
        return SearchOrchestrator(self.sources, self.fetch_engine, self.settings)


def persist_outcome(
    factory: sessionmaker,
    request: SearchRequest,
    outcome: SearchOutcome,
    *,
    chunk_size: int = 50,
    started_at=None,
) -> BatchResult:
    with get_session(factory) as session:
        result = upsert_jobs(session, outcome.jobs, chunk_size=chunk_size)
        try:
            record_search_run(session, request, outcome, result, started_at=started_at)
        except SQLAlchemyError as e:
            session.rollback()
            LOGGER.warning("search run log not written role=%r: %s", request.role, e)
    return result


async def process_request(ctx: WorkerContext, request: SearchRequest) -> tuple[SearchOutcome, BatchResult]:
    """Search all sources for one request and persist what survives."""
    started_at = utcnow()
    LOGGER.info("processing role=%r experience=%r location=%r", request.role, request.experience, request.location)
    outcome = await ctx.orchestrator().search(request)
    if ctx.session_factory is None:
        raise RuntimeError("worker context is not connected")
    result = await asyncio.to_thread(
        persist_outcome,
        ctx.session_factory,
        request,
        outcome,
        chunk_size=ctx.settings.persist_chunk,
        started_at=started_at,
    )
    if outcome.total_jobs == 0:
        LOGGER.info("no job links found role=%r experience=%r", request.role, request.experience)
    LOGGER.info(
        "done role=%r total=%s inserted=%s matched=%s updated=%s failed=%s sources=%s",
        request.role, outcome.total_jobs, result.inserted, result.matched,
        result.updated, result.failed, len(outcome.per_source_count),
    )
    return outcome, result


@dataclass
class WorkerStats:
    processed: int = 0
    failed: int = 0
    polls: int = 0


class QueueWorker:
    def __init__(
        self,
        ctx: WorkerContext,
        *,
        empty_polls: Optional[int] = None,
        poll_backoff: Optional[float] = None,
        job_delay: Optional[float] = None,
    ):
        self.ctx = ctx
        self.max_empty = max(1, empty_polls if empty_polls is not None else ctx.settings.empty_polls)
        self.poll_backoff = poll_backoff if poll_backoff is not None else ctx.settings.poll_backoff
        self.job_delay = job_delay if job_delay is not None else ctx.settings.job_delay

    async def handle(self, request: SearchRequest) -> None:
        await process_request(self.ctx, request)

    async def run(self) -> WorkerStats:
        stats = WorkerStats()
        empty = 0
        pid = os.getpid()
        while True:
            try:
                payload = await self.ctx.queue.pop()
            except QueueUnavailable as e:
                LOGGER.warning("worker pid=%s queue pop failed: %s", pid, e)
                payload = None
            stats.polls += 1
            if payload is None:
                empty += 1
                if empty >= self.max_empty:
                    LOGGER.info("worker pid=%s queue empty after %s checks, exiting", pid, empty)
                    break
                LOGGER.info(
                    "worker pid=%s queue empty, checking again in %ss (%s/%s)",
                    pid, self.poll_backoff, empty, self.max_empty,
                )
                await _pause(self.poll_backoff)
                continue

            empty = 0
            try:
                request = decode_request(payload)
                await self.handle(request)
                stats.processed += 1
            except Exception:
                stats.failed += 1
                LOGGER.exception("worker pid=%s request failed payload=%.200s", pid, payload)
            await _pause(self.job_delay)
        return stats


def cross_product(roles: Iterable[str], experiences: Iterable[str]) -> list[SearchRequest]:
    return [SearchRequest(role=r, experience=e) for r, e in itertools.product(list(roles), list(experiences))]


async def run_once(ctx: WorkerContext, requests: Sequence[SearchRequest]) -> WorkerStats:
    """Process a fixed list of requests directly, bypassing the queue."""
    stats = WorkerStats()
    for i, request in enumerate(requests):
        try:
            await process_request(ctx, request)
            stats.processed += 1
        except Exception:
            stats.failed += 1
            LOGGER.exception("one-shot request failed role=%r experience=%r", request.role, request.experience)
        if i + 1 < len(requests):
            await _pause(ctx.settings.job_delay)
    return stats
