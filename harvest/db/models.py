from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# --- SQLAlchemy base ---------------------------------------------------------

class Base(DeclarativeBase):
    """Declarative base for all models."""
    pass


# --- Models ------------------------------------------------------------------

class Job(Base):
    """A persisted listing. apply_url is the identity: one row per URL, ever."""

    __tablename__ = "job_links"
    __table_args__ = (
        # Concurrent workers rely on this, not on locking
        UniqueConstraint("apply_url", name="uq_job_links_apply_url"),
        Index("ix_job_links_scraped_at", "scraped_at"),
        Index("ix_job_links_role", "role"),
        Index("ix_job_links_source", "source"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    apply_url: Mapped[str] = mapped_column(String(1000), nullable=False)

    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(200), nullable=False)
    experience: Mapped[str] = mapped_column(String(40), nullable=False)
    country: Mapped[str] = mapped_column(String(80), nullable=False)
    source: Mapped[str] = mapped_column(String(80), nullable=False)

    scraped_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Bookkeeping
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Job id={self.id} source={self.source} title={self.title!r}>"


class SearchRun(Base):
    """One processed search request, for observability."""

    __tablename__ = "search_runs"

    id: Mapped[int] = mapped_column(primary_key=True)
    role: Mapped[str] = mapped_column(String(200), nullable=False)
    experience: Mapped[str] = mapped_column(String(40), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    source_counts: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    raw_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_jobs: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    inserted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<SearchRun id={self.id} role={self.role!r} total={self.total_jobs}>"


__all__ = [
    "Base",
    "Job",
    "SearchRun",
]
