from __future__ import annotations

import logging
import math
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from harvest.core.errors import PersistenceFailure
from harvest.core.models import BatchResult, CanonicalListing, SearchOutcome, SearchRequest
from harvest.db.models import Job, SearchRun

LOGGER = logging.getLogger(__name__)

# Fields refreshed on every later sighting of a URL (last write wins)
UPDATABLE_FIELDS = ("title", "role", "experience", "country", "scraped_at", "updated_at")
CONTENT_FIELDS = ("title", "role", "experience", "country")

DATE_RANGES = {"24h": timedelta(days=1), "7d": timedelta(days=7), "30d": timedelta(days=30)}


def _to_naive_utc(dt_val: Optional[datetime]) -> datetime:
    # Store naive UTC; SQLite drops offsets anyway
    if dt_val is None:
        return datetime.now(timezone.utc).replace(tzinfo=None)
    return dt_val if dt_val.tzinfo is None else dt_val.astimezone(timezone.utc).replace(tzinfo=None)


def _row_values(job: CanonicalListing) -> dict:
    now = _to_naive_utc(None)
    return {
        "apply_url": job.url,
        "title": job.title,
        "role": job.role,
        "experience": job.experience,
        "country": job.country,
        "source": job.source_name,
        "scraped_at": _to_naive_utc(job.observed_at),
        "created_at": now,
        "updated_at": now,
    }


def _upsert_statement(dialect_name: str, values: dict):
    """INSERT ... ON CONFLICT (apply_url) DO UPDATE for dialects that support it, else None."""
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        return None
    stmt = insert(Job).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=[Job.apply_url],
        set_={name: getattr(stmt.excluded, name) for name in UPDATABLE_FIELDS},
    )


def _upsert_one_fallback(session: Session, values: dict) -> None:
    # Insert inside a savepoint; the unique constraint turns a lost race into an update
    try:
        with session.begin_nested():
            session.add(Job(**values))
            session.flush()
    except IntegrityError:
        row = session.execute(select(Job).where(Job.apply_url == values["apply_url"])).scalar_one()
        for name in UPDATABLE_FIELDS:
            setattr(row, name, values[name])
        session.flush()


def upsert_one(session: Session, job: CanonicalListing) -> None:
    """Atomic insert-or-update of a single listing keyed by its (original) URL."""
    values = _row_values(job)
    stmt = _upsert_statement(session.get_bind().dialect.name, values)
    if stmt is None:
        _upsert_one_fallback(session, values)
    else:
        session.execute(stmt)


def _existing_content(session: Session, urls: Sequence[str]) -> Dict[str, tuple]:
    if not urls:
        return {}
    rows = session.execute(
        select(Job.apply_url, *(getattr(Job, f) for f in CONTENT_FIELDS)).where(Job.apply_url.in_(urls))
    ).all()
    return {r[0]: tuple(r[1:]) for r in rows}


def _chunks(jobs: Sequence[CanonicalListing], size: int) -> Iterable[List[CanonicalListing]]:
    for i in range(0, len(jobs), size):
        yield list(jobs[i:i + size])


def upsert_chunk(session: Session, chunk: Sequence[CanonicalListing]) -> BatchResult:
    """Upsert one chunk and commit it. Raises PersistenceFailure after rolling back."""
    result = BatchResult()
    try:
        known = _existing_content(session, [j.url for j in chunk])
        for job in chunk:
            content = (job.title, job.role, job.experience, job.country)
            previous = known.get(job.url)
            upsert_one(session, job)
            if previous is None:
                result.inserted += 1
            else:
                result.matched += 1
                if previous != content:
                    result.updated += 1
            known[job.url] = content
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceFailure(f"chunk of {len(chunk)} failed: {e}") from e
    return result


def upsert_jobs(session: Session, jobs: Iterable[CanonicalListing], chunk_size: int = 50) -> BatchResult:
    """Persist listings, one commit per chunk, chunks grouped by source.

    Re-running with the same listings never adds rows: the identity is the
    original apply URL. A failed chunk is rolled back and counted in
    `failed`; chunks already committed stay written.
    """
    by_source: "OrderedDict[str, List[CanonicalListing]]" = OrderedDict()
    for job in jobs:
        by_source.setdefault(job.source_name, []).append(job)

    total = BatchResult()
    for source, listings in by_source.items():
        for chunk in _chunks(listings, max(1, chunk_size)):
            try:
                res = upsert_chunk(session, chunk)
            except PersistenceFailure as e:
                LOGGER.error("persist source=%s failed: %s", source, e)
                total = total.merge(BatchResult(failed=len(chunk)))
                continue
            LOGGER.info(
                "persist source=%s inserted=%s matched=%s updated=%s",
                source, res.inserted, res.matched, res.updated,
            )
            total = total.merge(res)
    return total


def record_search_run(
    session: Session,
    request: SearchRequest,
    outcome: SearchOutcome,
    result: BatchResult,
    *,
    started_at: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> SearchRun:
    run = SearchRun(
        role=request.role,
        experience=request.experience,
        started_at=_to_naive_utc(started_at),
        finished_at=_to_naive_utc(None),
        source_counts=dict(outcome.per_source_count),
        raw_count=outcome.raw_count,
        total_jobs=outcome.total_jobs,
        inserted=result.inserted,
        updated=result.updated,
        errors=result.failed + len(outcome.source_errors),
        notes=notes,
    )
    session.add(run)
    session.commit()
    return run


# --- read side (used by the search API and the stats command) ----------------

def count_jobs(session: Session) -> int:
    return session.scalar(select(func.count()).select_from(Job)) or 0


def count_by_source(session: Session) -> Dict[str, int]:
    rows = session.execute(
        select(Job.source, func.count()).group_by(Job.source).order_by(func.count().desc())
    ).all()
    return {source: n for source, n in rows}


def recent_jobs(session: Session, limit: int = 5) -> Sequence[Job]:
    return session.execute(select(Job).order_by(Job.scraped_at.desc()).limit(limit)).scalars().all()


def get_job_by_url(session: Session, url: str) -> Optional[Job]:
    return session.execute(select(Job).where(Job.apply_url == url)).scalar_one_or_none()


def search_jobs(
    session: Session,
    *,
    role: Optional[str] = None,
    experience: Optional[str] = None,
    date_range: str = "all",
    sort_by: str = "latest",
    page: int = 1,
    limit: int = 12,
    now: Optional[datetime] = None,
) -> dict:
    """Filtered, paginated listing query.

    role matches as a case-insensitive substring; experience by its first
    word ("Mid Level" matches "mid"); date_range is one of all/24h/7d/30d on
    scraped_at; sort_by is latest (default) or oldest.
    """
    page = max(1, int(page or 1))
    limit = max(1, int(limit or 12))

    filters = []
    if role:
        filters.append(Job.role.ilike(f"%{role}%"))
    if experience:
        first = experience.split()[0] if experience.split() else experience
        filters.append(Job.experience.ilike(f"%{first}%"))
    if date_range in DATE_RANGES:
        cutoff = _to_naive_utc(now) - DATE_RANGES[date_range]
        filters.append(Job.scraped_at >= cutoff)

    total = session.scalar(select(func.count()).select_from(Job).where(*filters)) or 0
    order = Job.scraped_at.asc() if sort_by == "oldest" else Job.scraped_at.desc()
    items = session.execute(
        select(Job).where(*filters).order_by(order, Job.id.desc()).offset((page - 1) * limit).limit(limit)
    ).scalars().all()

    total_pages = math.ceil(total / limit) if total else 0
    return {
        "jobs": list(items),
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "total_jobs": total,
            "limit": limit,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
        },
    }
