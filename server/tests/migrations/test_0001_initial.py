# server/tests/migrations/test_0001_initial.py
import io
import os
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config

SERVER_DIR = Path(__file__).resolve().parents[2]


def _config(url: str, buffer=None) -> Config:
    cfg = Config(str(SERVER_DIR / "alembic.ini"), output_buffer=buffer)
    cfg.set_main_option("script_location", str(SERVER_DIR / "alert_engine" / "migrations"))
    cfg.set_main_option("sqlalchemy.url", url)
    return cfg


@pytest.mark.unit
def test_migration_0001_renders_offline():
    """Rendu SQL (mode offline, dialecte PostgreSQL) sans base réelle."""
    buf = io.StringIO()
    command.upgrade(_config("postgresql+psycopg://u:p@localhost/alerts", buf), "0001_initial", sql=True)
    sql = buf.getvalue()

    for table in (
        "hazard_events", "vessels", "contacts", "vessel_contacts", "escalation_policies",
        "alerts", "alert_claims", "delivery_logs", "escalation_runs",
    ):
        assert f"CREATE TABLE {table}" in sql
    assert "uq_alert_claims_vessel_event" in sql


@pytest.mark.skipif(not os.getenv("MIGRATIONS_DATABASE_URL"), reason="needs a PostgreSQL database")
def test_migration_0001_upgrade_downgrade():
    cfg = _config(os.environ["MIGRATIONS_DATABASE_URL"])
    command.upgrade(cfg, "0001_initial")
    command.downgrade(cfg, "base")
