# server/alert_engine/infrastructure/persistence/database/session.py
from __future__ import annotations

"""SQLAlchemy engine/session setup + transactional scope."""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from alert_engine.core.config import settings

_engine: Engine | None = None
_SessionLocal: sessionmaker | None = None


def build_engine_for_url(database_url: str) -> Engine:
    """
    Engine with dialect-aware connect_args.
    - PostgreSQL: pass connect_timeout
    - SQLite: in-memory DB shared through StaticPool; file DB waits on locks
    """
    url = make_url(database_url)
    backend = url.get_backend_name()
    kwargs: dict = dict(future=True, pool_pre_ping=True)
    connect_args: dict = {}

    if backend.startswith("postgresql") or backend == "postgres":
        connect_args["connect_timeout"] = settings.DB_CONNECT_TIMEOUT
    elif backend.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        db_name = (url.database or "").strip()
        if db_name in ("", ":memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            connect_args["timeout"] = 30

    return create_engine(database_url, connect_args=connect_args, **kwargs)


def init_engine() -> Engine:
    """Create (once) the process-wide Engine from settings.DATABASE_URL."""
    global _engine
    if _engine is None:
        _engine = build_engine_for_url(settings.DATABASE_URL)
    return _engine


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, future=True, autoflush=True, expire_on_commit=False)


def init_sessionmaker() -> sessionmaker:
    """Create (once) and return the SessionLocal factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = make_sessionmaker(init_engine())
    return _SessionLocal


@contextmanager
def open_session(factory=None) -> Iterator[Session]:
    """
    Transactional scope: commit on success, rollback on error, always close.
        with open_session(factory) as s: ...
    """
    s = (factory or init_sessionmaker())()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
