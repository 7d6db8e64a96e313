"""Prune stale job links based on a configurable retention window.

Deletes rows whose scraped_at is older than HARVEST_RETENTION_DAYS (30 days),
optionally scoped to one source. Designed to be run from a cronjob after the
launcher.
"""

from __future__ import annotations

import argparse
import os
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from harvest.config import load_settings
from harvest.db.models import Job
from harvest.db.session import connect_store, get_session, make_session_factory

DEFAULT_RETENTION_DAYS = 30
DEFAULT_SAMPLE_SIZE = 10


def _parse_bool(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass
class PruneSummary:
    cutoff_utc: str
    matched: int
    deleted: int
    source: Optional[str]
    dry_run: bool
    sample: list[dict]

    def to_dict(self) -> dict:
        return asdict(self)


def prune_jobs(
    session: Session,
    days: int,
    *,
    source: Optional[str] = None,
    dry_run: bool = False,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    now: Optional[datetime] = None,
) -> PruneSummary:
    if days <= 0:
        raise ValueError("Retention 'days' must be positive")

    now = now or datetime.now(timezone.utc)
    # scraped_at is stored as naive UTC
    cutoff = (now.astimezone(timezone.utc) - timedelta(days=days)).replace(tzinfo=None)

    filters = [Job.scraped_at < cutoff]
    if source:
        filters.append(Job.source == source)

    total = session.scalar(select(func.count()).select_from(Job).where(*filters)) or 0

    sample_rows = session.execute(
        select(Job).where(*filters).order_by(Job.scraped_at.asc(), Job.id.asc()).limit(sample_size)
    ).scalars().all() if total else []

    sample_payload: list[dict] = [
        {
            "id": row.id,
            "source": row.source,
            "title": row.title,
            "role": row.role,
            "scraped_at": row.scraped_at.isoformat() if row.scraped_at else None,
            "url": row.apply_url,
        }
        for row in sample_rows
    ]

    deleted = 0
    if total and not dry_run:
        deleted = session.execute(delete(Job).where(*filters)).rowcount or 0
        session.commit()

    return PruneSummary(
        cutoff_utc=cutoff.isoformat(),
        matched=total,
        deleted=deleted,
        source=source,
        dry_run=dry_run,
        sample=sample_payload,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Prune stale job links from the database")
    parser.add_argument(
        "--days",
        type=int,
        default=int(os.getenv("HARVEST_RETENTION_DAYS", DEFAULT_RETENTION_DAYS)),
        help="Retention window in days (default: env HARVEST_RETENTION_DAYS or 30)",
    )
    parser.add_argument(
        "--source",
        type=str,
        default=os.getenv("HARVEST_RETENTION_SOURCE"),
        help="Optional source name to scope pruning (default: all sources)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=_parse_bool(os.getenv("HARVEST_RETENTION_DRY_RUN")),
        help="Report what would be deleted without modifying the database",
    )
    parser.add_argument(
        "--sample-size",
        type=int,
        default=int(os.getenv("HARVEST_RETENTION_SAMPLE", DEFAULT_SAMPLE_SIZE)),
        help="How many representative rows to include in the summary output",
    )

    args = parser.parse_args()

    engine = connect_store(load_settings().database_url)
    try:
        with get_session(make_session_factory(engine)) as session:
            summary = prune_jobs(
                session,
                args.days,
                source=args.source,
                dry_run=args.dry_run,
                sample_size=args.sample_size,
            )
    finally:
        engine.dispose()

    print(summary.to_dict())


if __name__ == "__main__":
    main()
