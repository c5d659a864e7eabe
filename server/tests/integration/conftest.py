# server/tests/integration/conftest.py
"""
Base SQLite *fichier* (tmp_path) : plusieurs connexions réelles, donc de vrais
accès concurrents, contrairement à la base in-memory partagée des tests unit.
"""
from __future__ import annotations

import pytest
from sqlalchemy import event


@pytest.fixture
def file_engine(tmp_path, providers, clock, cfg):
    from alert_engine.application.container import build_engine
    from alert_engine.infrastructure.persistence.database.base import Base
    from alert_engine.infrastructure.persistence.database.session import build_engine_for_url, make_sessionmaker

    db = build_engine_for_url(f"sqlite+pysqlite:///{tmp_path / 'alerts.db'}")

    @event.listens_for(db, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(db)
    factory = make_sessionmaker(db)
    try:
        yield build_engine(session_factory=factory, providers=providers, queue=None, clock=clock, cfg=cfg)
    finally:
        db.dispose()


@pytest.fixture
def file_seed(file_engine, clock, seed_factory):
    return seed_factory(file_engine.session_factory, clock)
