"""Runtime settings for the harvest worker.

Everything comes from environment variables (optionally loaded from a .env
file via python-dotenv, path overridable with HARVEST_DOTENV). Settings are
built once by `load_settings()` and passed around explicitly.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Union

import yaml
from dotenv import load_dotenv

from harvest.core.models import DedupPolicy

_ = load_dotenv(dotenv_path=os.getenv("HARVEST_DOTENV", ".env"))


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    try:
        return int(v) if v is not None else default
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    try:
        return float(v) if v is not None else default
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _database_url() -> str:
    url = (
        os.getenv("HARVEST_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or "sqlite:///./harvest.db"
    )
    # Normalize legacy PostgreSQL scheme if present
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://") and "+" not in url.split("://", 1)[0]:
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./harvest.db"
    redis_url: str = "redis://localhost:6379/0"
    queue_key: str = "link-request-queue"
    country: str = "United States"

    # orchestrator / paginator
    batch_size: int = 3
    min_results: int = 20
    min_results_scripted: int = 10
    page_cap: int = 5
    page_cap_scripted: int = 2
    page_delay: float = 2.0
    source_delay: float = 3.0
    dedup_policy: DedupPolicy = DedupPolicy.CROSS_SOURCE

    # fetch engine
    fetch_timeout: float = 15.0
    browser_timeout: float = 30.0
    settle_ms: int = 2000
    scroll: bool = True
    wait_for_idle: bool = False

    # worker loop
    empty_polls: int = 3
    poll_backoff: float = 3.0
    job_delay: float = 3.0

    persist_chunk: int = 50
    sources_file: Optional[str] = None
    log_level: str = "INFO"

    def with_overrides(self, **kwargs) -> "Settings":
        return replace(self, **kwargs)


def load_settings() -> Settings:
    policy_raw = os.getenv("HARVEST_DEDUP_POLICY", DedupPolicy.CROSS_SOURCE.value)
    try:
        policy = DedupPolicy(policy_raw.strip().lower())
    except ValueError:
        policy = DedupPolicy.CROSS_SOURCE

    return Settings(
        database_url=_database_url(),
        redis_url=os.getenv("HARVEST_REDIS_URL") or os.getenv("REDIS_URL") or "redis://localhost:6379/0",
        queue_key=os.getenv("HARVEST_QUEUE_KEY", "link-request-queue"),
        country=os.getenv("HARVEST_COUNTRY", "United States"),
        batch_size=max(1, _env_int("HARVEST_BATCH_SIZE", 3)),
        min_results=_env_int("HARVEST_MIN_RESULTS", 20),
        min_results_scripted=_env_int("HARVEST_MIN_RESULTS_SCRIPTED", 10),
        page_cap=max(1, _env_int("HARVEST_PAGE_CAP", 5)),
        page_cap_scripted=max(1, _env_int("HARVEST_PAGE_CAP_SCRIPTED", 2)),
        page_delay=_env_float("HARVEST_PAGE_DELAY", 2.0),
        source_delay=_env_float("HARVEST_SOURCE_DELAY", 3.0),
        dedup_policy=policy,
        fetch_timeout=_env_float("HARVEST_FETCH_TIMEOUT", 15.0),
        browser_timeout=_env_float("HARVEST_BROWSER_TIMEOUT", 30.0),
        settle_ms=_env_int("HARVEST_SETTLE_MS", 2000),
        scroll=_env_bool("HARVEST_SCROLL", True),
        wait_for_idle=_env_bool("HARVEST_WAIT_IDLE", False),
        empty_polls=max(1, _env_int("HARVEST_EMPTY_POLLS", 3)),
        poll_backoff=_env_float("HARVEST_POLL_BACKOFF", 3.0),
        job_delay=_env_float("HARVEST_JOB_DELAY", 3.0),
        persist_chunk=max(1, _env_int("HARVEST_PERSIST_CHUNK", 50)),
        sources_file=os.getenv("HARVEST_SOURCES_FILE") or None,
        log_level=os.getenv("HARVEST_LOG_LEVEL", "INFO").upper(),
    )


def load_source_table(path: Union[str, Path]) -> list[dict]:
    """Read a YAML source table. A single mapping is treated as a one-entry table."""
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if isinstance(data, dict):
        if isinstance(data.get("sources"), list):
            return data["sources"]
        return [data]
    elif isinstance(data, list):
        return data
    else:
        return []
