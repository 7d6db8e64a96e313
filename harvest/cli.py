# harvest/cli.py
"""
Command line entry points:

  harvest worker                      drain the work queue, exit when idle
  harvest once [--roles ..]           one-shot role x experience sweep, no queue
  harvest launch [--shard NAME]       run `once` per role shard in subprocesses
  harvest enqueue [--roles ..]        push role x experience requests onto the queue
  harvest init-db                     create the schema
  harvest stats                       record counts and most recent listings
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import subprocess
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Optional, Sequence

from harvest.config import Settings, load_settings
from harvest.core.errors import HarvestError, QueueUnavailable, StoreUnavailable
from harvest.core.models import DedupPolicy, SearchRequest
from harvest.db.crud import count_by_source, count_jobs, recent_jobs
from harvest.db.session import connect_store, get_session, make_session_factory
from harvest.shards import SHARDS, DEFAULT_EXPERIENCES, Shard, find_shard, resolve_roles, suggest_roles
from harvest.worker import QueueWorker, WorkerContext, cross_product, run_once
from harvest.workqueue import MemoryWorkQueue, RedisWorkQueue

LOGGER = logging.getLogger("harvest.cli")

MAX_PARALLEL = 4


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [pid=%(process)d] %(name)s: %(message)s",
    )


def _split(values: Optional[Sequence[str]]) -> list[str]:
    out: list[str] = []
    for v in values or []:
        out.extend(p.strip() for p in v.split(",") if p.strip())
    return out


def _requests(args: argparse.Namespace) -> list[SearchRequest]:
    roles = resolve_roles(_split(args.roles))
    experiences = _split(args.experiences) or list(DEFAULT_EXPERIENCES)
    return cross_product(roles, experiences)


# --- commands ----------------------------------------------------------------

async def _worker(settings: Settings) -> int:
    ctx = WorkerContext(settings)
    await ctx.connect()
    try:
        stats = await QueueWorker(ctx).run()
    finally:
        await ctx.close()
    LOGGER.info("worker finished processed=%s failed=%s polls=%s", stats.processed, stats.failed, stats.polls)
    return 0


async def _once(settings: Settings, requests: list[SearchRequest]) -> int:
    ctx = WorkerContext(settings, queue=MemoryWorkQueue())
    await ctx.connect()
    try:
        stats = await run_once(ctx, requests)
    finally:
        await ctx.close()
    LOGGER.info("one-shot finished processed=%s failed=%s", stats.processed, stats.failed)
    return 0


async def _enqueue(settings: Settings, requests: list[SearchRequest]) -> int:
    queue = RedisWorkQueue(settings.redis_url, settings.queue_key)
    await queue.connect()
    try:
        for request in requests:
            await queue.push(request)
            print(f"Added request for: {request.role} ({request.experience})")
        print(f"Queue {settings.queue_key!r} now holds {await queue.size()} request(s)")
    finally:
        await queue.close()
    return 0


def run_shard(shard: Shard, extra_args: Sequence[str] = ()) -> int:
    """Run `harvest once` for one shard in a child process; returns its exit code."""
    env = dict(os.environ)
    env["ROLES"] = json.dumps(list(shard.roles))
    cmd = [sys.executable, "-m", "harvest.cli", *extra_args, "once"]
    LOGGER.info("starting shard=%s roles=%s", shard.name, len(shard.roles))
    completed = subprocess.run(cmd, env=env, check=False)
    if completed.returncode == 0:
        LOGGER.info("shard completed shard=%s", shard.name)
    else:
        LOGGER.error("shard failed shard=%s code=%s", shard.name, completed.returncode)
    return completed.returncode


def launch(shards: Sequence[Shard], max_parallel: int = MAX_PARALLEL, extra_args: Sequence[str] = ()) -> dict[str, bool]:
    """Run every shard with bounded parallelism. Returns shard name -> succeeded."""
    print(f"[launch] starting pipeline at {datetime.now(timezone.utc).isoformat()}")
    print(f"[launch] shards={len(shards)} concurrency={max_parallel}")
    results: dict[str, bool] = {}
    with ThreadPoolExecutor(max_workers=max(1, max_parallel)) as pool:
        futures = {shard.name: pool.submit(run_shard, shard, extra_args) for shard in shards}
        for name, fut in futures.items():
            try:
                results[name] = fut.result() == 0
            except OSError as e:
                LOGGER.error("could not spawn shard=%s: %s", name, e)
                results[name] = False

    ok = sum(1 for v in results.values() if v)
    for name, success in results.items():
        print(f"  [{'SUCCESS' if success else 'FAILED'}] {name}")
    print(f"Total: {len(results)} | Success: {ok} | Failed: {len(results) - ok}")
    return results


def _stats(settings: Settings, limit: int) -> int:
    engine = connect_store(settings.database_url)
    try:
        with get_session(make_session_factory(engine)) as session:
            print(f"Total records: {count_jobs(session)}")
            for source, n in count_by_source(session).items():
                print(f"  {source}: {n}")
            print("Most recent:")
            for job in recent_jobs(session, limit=limit):
                print(f"  [{job.scraped_at:%Y-%m-%d %H:%M}] {job.source} | {job.title} | {job.apply_url}")
    finally:
        engine.dispose()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="harvest", description="Job listing harvester")
    parser.add_argument("--log-level", default=None, help="Override HARVEST_LOG_LEVEL")
    parser.add_argument("--dedup", choices=[p.value for p in DedupPolicy], default=None,
                        help="Deduplication policy (overrides HARVEST_DEDUP_POLICY)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("worker", help="Process queued requests until the queue stays empty")

    for name, help_text in (("once", "Search role x experience directly, without the queue"),
                            ("enqueue", "Push role x experience requests onto the work queue")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--roles", nargs="*", default=None,
                       help="Roles (space or comma separated; default: env ROLES or built-in list)")
        p.add_argument("--experiences", nargs="*", default=None,
                       help="Experience levels (default: Entry Level, Mid Level, Senior Level)")

    p = sub.add_parser("launch", help="Run one `once` process per role shard")
    p.add_argument("--max-parallel", type=int, default=MAX_PARALLEL)
    p.add_argument("--shard", action="append", default=None, help="Only run the named shard(s)")

    sub.add_parser("init-db", help="Create tables and indexes")

    p = sub.add_parser("stats", help="Show record counts and the most recent listings")
    p.add_argument("--limit", type=int, default=5)

    p = sub.add_parser("suggest", help="List catalog roles matching a query")
    p.add_argument("query")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    if args.dedup:
        settings = settings.with_overrides(dedup_policy=DedupPolicy(args.dedup))
    _configure_logging(args.log_level or settings.log_level)

    try:
        if args.command == "worker":
            return asyncio.run(_worker(settings))
        if args.command == "once":
            return asyncio.run(_once(settings, _requests(args)))
        if args.command == "enqueue":
            return asyncio.run(_enqueue(settings, _requests(args)))
        if args.command == "launch":
            shards = [find_shard(n) for n in args.shard] if args.shard else list(SHARDS)
            extra = ["--dedup", args.dedup] if args.dedup else []
            launch(shards, max_parallel=args.max_parallel, extra_args=extra)
            # Shard failures are reported above; the launcher itself succeeded
            return 0
        if args.command == "init-db":
            engine = connect_store(settings.database_url)
            engine.dispose()
            print(f"Schema ready at {settings.database_url}")
            return 0
        if args.command == "stats":
            return _stats(settings, args.limit)
        if args.command == "suggest":
            for role in suggest_roles(args.query):
                print(role)
            return 0
    except (QueueUnavailable, StoreUnavailable) as e:
        LOGGER.error("startup failed: %s", e)
        return 1
    except KeyError as e:
        LOGGER.error("%s", e.args[0] if e.args else e)
        return 1
    except HarvestError as e:
        LOGGER.error("%s", e)
        return 1
    return 1


if __name__ == "__main__":
    sys.exit(main())
