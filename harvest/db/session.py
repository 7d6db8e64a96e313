"""SQLAlchemy engine/session setup for the document store.

Nothing here is created at import time: callers build an engine from
`Settings.database_url` and keep it on their context object.

Environment variables (optional)
--------------------------------
HARVEST_DB_POOL_SIZE (int, default 5)
HARVEST_DB_MAX_OVERFLOW (int, default 10)
HARVEST_DB_ECHO ("1" to enable SQL echo)
"""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from harvest.core.errors import StoreUnavailable
from harvest.db.models import Base

LOGGER = logging.getLogger(__name__)


def make_engine(url: str) -> Engine:
    """Create a SQLAlchemy engine with sensible defaults.

    - pool_pre_ping avoids stale connections
    - echo can be toggled via HARVEST_DB_ECHO
    - pool sizing via HARVEST_DB_POOL_SIZE / HARVEST_DB_MAX_OVERFLOW
    - in-memory SQLite shares one connection so every session sees the same data
    """
    echo = os.getenv("HARVEST_DB_ECHO", "0") == "1"

    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, pool_pre_ping=True, **kwargs)

    pool_size = int(os.getenv("HARVEST_DB_POOL_SIZE", "5"))
    max_overflow = int(os.getenv("HARVEST_DB_MAX_OVERFLOW", "10"))
    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=max_overflow,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@contextmanager
def get_session(factory: sessionmaker) -> Iterator[Session]:
    """Yield a session and always close it. Callers commit explicitly."""
    session: Session = factory()
    try:
        yield session
    finally:
        session.close()


def init_schema(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


def ping_store(engine: Engine) -> bool:
    """Lightweight connectivity check. Returns True on success."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


def connect_store(url: str) -> Engine:
    """Engine with a verified connection and the schema (incl. the unique index) in place."""
    engine = make_engine(url)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        init_schema(engine)
    except SQLAlchemyError as e:
        engine.dispose()
        raise StoreUnavailable(f"document store unreachable at {engine.url!r}: {e}") from e
    LOGGER.info("store connected url=%r", engine.url)
    return engine
