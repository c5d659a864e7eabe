# server/tests/conftest.py
"""
Conftest *global* pour toute la suite de tests.

Points clés :
- ENV sûres posées avant tout import alert_engine.* (pas de Twilio / SMTP,
  pas de Postgres, clés API vides → API ouverte).
- DB SQLite in-memory partagée (StaticPool) + Base.metadata.create_all,
  purgée entre deux tests.
- Horloge contrôlable (`clock`) injectée dans tous les services.
- Providers factices (`providers`) : enregistrent chaque envoi et peuvent
  échouer sur commande, par destination.
- `engine` : AlertEngine complet, livraisons exécutées inline (queue=None).
- `seed` : fabriques de navires, contacts, évènements et politiques.
- Celery en mode "eager" (tâches exécutées in-process).
"""

from __future__ import annotations

import os
import uuid
from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import event


def pytest_configure(config) -> None:
    """S'exécute avant la collecte → les ENV sont vues par Settings()."""
    os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    os.environ.setdefault("STUB_PROVIDERS", "1")
    os.environ.setdefault("APP_BASE_URL", "https://ops.example.test")
    os.environ.pop("API_KEYS", None)


# ============================================================================
# Horloge
# ============================================================================
class FakeClock:
    """Horloge figée, avancée explicitement par les tests."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))


# ============================================================================
# Providers factices
# ============================================================================
class FakeProviders:
    """
    Remplace le ProviderRegistry.
    - `sent` : liste des envois (channel, destination, body, subject)
    - `fail_next(destination, n)` : les n prochains envois vers `destination` échouent
    """

    def __init__(self):
        self.sent: list[dict] = []
        self._script: dict[str, deque] = defaultdict(deque)
        self._seq = 0

    def fail_next(self, destination: str, n: int = 1, error: str = "provider unavailable") -> None:
        self._script[destination].extend([error] * n)

    def fail_always(self, destination: str) -> None:
        self.fail_next(destination, 1000)

    def send(self, channel, destination, body, *, subject=None):
        from alert_engine.domain.types import Channel, SendResult

        self._seq += 1
        record = {"channel": Channel(channel).value, "destination": destination, "body": body, "subject": subject}
        self.sent.append(record)
        script = self._script.get(destination)
        if script:
            return SendResult(success=False, error=script.popleft())
        return SendResult(success=True, provider_message_id=f"fake-{self._seq}")

    def to(self, destination: str) -> list[dict]:
        return [r for r in self.sent if r["destination"] == destination]


@pytest.fixture
def providers() -> FakeProviders:
    return FakeProviders()


# ============================================================================
# DB SQLite in-memory partagée + Base.metadata.create_all
# ============================================================================
@pytest.fixture(scope="session")
def _sqlite_engine():
    from alert_engine.infrastructure.persistence.database.base import Base
    from alert_engine.infrastructure.persistence.database.session import build_engine_for_url

    engine = build_engine_for_url("sqlite+pysqlite:///:memory:")

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="session")
def _Session(_sqlite_engine):
    from alert_engine.infrastructure.persistence.database.session import make_sessionmaker

    return make_sessionmaker(_sqlite_engine)


@pytest.fixture
def Session(_Session):
    """sessionmaker à utiliser comme `with Session() as s:`"""
    return _Session


@pytest.fixture(autouse=True)
def _clear_db_between_tests(request):
    """Après chaque test utilisant la DB partagée, on vide toutes les tables."""
    yield
    if "_Session" not in request.fixturenames:
        return
    from alert_engine.infrastructure.persistence.database.base import Base

    factory = request.getfixturevalue("_Session")
    with factory() as s:
        for table in reversed(Base.metadata.sorted_tables):
            s.execute(table.delete())
        s.commit()


# ============================================================================
# Moteur complet
# ============================================================================
@pytest.fixture
def cfg():
    from alert_engine.core.config import Settings

    return Settings(
        PROXIMITY_WORKERS=1,
        MAX_DELIVERY_ATTEMPTS=3,
        DUPLICATE_WINDOW_HOURS=24,
        ALERT_TTL_HOURS=24,
        APP_BASE_URL="https://ops.example.test",
    )


@pytest.fixture
def engine(Session, providers, clock, cfg):
    from alert_engine.application.container import build_engine

    return build_engine(session_factory=Session, providers=providers, queue=None, clock=clock, cfg=cfg)


# ============================================================================
# Fabriques de données
# ============================================================================
class Seed:
    def __init__(self, session_factory, clock: FakeClock):
        self._Session = session_factory
        self._clock = clock

    def vessel(self, *, name="MV Aurora", mmsi=None, lat=35.5, lon=140.0, observed_minutes_ago=5, active=True):
        from alert_engine.infrastructure.persistence.database.models import Vessel

        with self._Session() as s:
            v = Vessel(
                id=uuid.uuid4(),
                mmsi=mmsi or str(uuid.uuid4().int % 10**9).zfill(9),
                name=name,
                active=active,
                latest_lat=lat,
                latest_lon=lon,
                position_observed_at=(
                    self._clock() - timedelta(minutes=observed_minutes_ago) if lat is not None else None
                ),
            )
            s.add(v)
            s.commit()
            return v

    def contact(
        self,
        vessel_id,
        *,
        name="Captain Reyes",
        role="captain",
        priority=1,
        notify_on=("low", "moderate", "high", "critical"),
        phone="+15550001",
        email="captain@example.test",
        whatsapp=None,
        active=True,
    ):
        from alert_engine.infrastructure.persistence.database.models import Contact
        from alert_engine.infrastructure.persistence.repositories.contact_repository import ContactRepository

        with self._Session() as s:
            repo = ContactRepository(s)
            c = repo.add_contact(
                Contact(id=uuid.uuid4(), name=name, phone=phone, email=email, whatsapp=whatsapp, active=active)
            )
            repo.bind(vessel_id=vessel_id, contact_id=c.id, role=role, priority=priority, notify_on=list(notify_on))
            s.commit()
            return c

    def event(
        self,
        *,
        kind="earthquake",
        lat=35.0,
        lon=140.0,
        minutes_ago=10,
        magnitude=7.2,
        wave_height_meters=None,
        active=True,
        location_label="Off the coast of Honshu",
    ):
        from alert_engine.infrastructure.persistence.database.models import HazardEvent

        with self._Session() as s:
            e = HazardEvent(
                id=uuid.uuid4(),
                kind=kind,
                source="test",
                external_id=uuid.uuid4().hex,
                latitude=lat,
                longitude=lon,
                magnitude=magnitude if kind == "earthquake" else None,
                depth_km=10.0 if kind == "earthquake" else None,
                wave_height_meters=wave_height_meters,
                location_label=location_label,
                occurred_at=self._clock() - timedelta(minutes=minutes_ago),
                active=active,
            )
            s.add(e)
            s.commit()
            return e

    def policy(
        self,
        *,
        name="Critical escalation",
        event_kinds=("earthquake", "tsunami"),
        severity_levels=("critical",),
        steps=(),
        active=True,
        created_minutes_ago=60,
    ):
        from alert_engine.infrastructure.persistence.database.models import EscalationPolicy

        with self._Session() as s:
            p = EscalationPolicy(
                id=uuid.uuid4(),
                name=name,
                event_kinds=list(event_kinds),
                severity_levels=list(severity_levels),
                steps=[dict(st) for st in steps],
                active=active,
                created_at=self._clock() - timedelta(minutes=created_minutes_ago),
            )
            s.add(p)
            s.commit()
            return p


@pytest.fixture
def seed(Session, clock) -> Seed:
    return Seed(Session, clock)


@pytest.fixture
def seed_factory():
    """Fabrique liée à une autre session factory (ex : base fichier)."""
    return Seed


# ============================================================================
# Celery en mode "eager"
# ============================================================================
@pytest.fixture
def celery_eager():
    from alert_engine.workers.celery_app import celery

    prev_always = celery.conf.task_always_eager
    prev_propag = celery.conf.task_eager_propagates
    celery.conf.task_always_eager = True
    celery.conf.task_eager_propagates = True
    try:
        yield celery
    finally:
        celery.conf.task_always_eager = prev_always
        celery.conf.task_eager_propagates = prev_propag
