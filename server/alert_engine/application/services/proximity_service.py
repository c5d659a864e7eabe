# server/alert_engine/application/services/proximity_service.py
from __future__ import annotations
"""
Proximity Monitor : boucle externe (tick périodique ou évènementiel).

Chaque tick :
- évènements actifs (survenus depuis EVENT_MAX_AGE_HOURS) ;
- navires dont la position date de moins de VESSEL_POSITION_MAX_AGE_MINUTES ;
- produit cartésien évalué par un pool de threads borné ; chaque paire
  classée (severity != None) part dans create_and_route.

Les objets ORM ne traversent pas les threads : on travaille sur des instantanés.
Une paire en erreur est logguée et n'interrompt pas le tick.
"""

import itertools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterable, Mapping, Optional

from sqlalchemy.orm import Session

from alert_engine.core.utils.datetime import as_utc, utcnow
from alert_engine.domain.errors import NotFoundError
from alert_engine.domain.geo import classify_severity, distance_km
from alert_engine.domain.messages import build_alert_message
from alert_engine.domain.types import LatLon, RouteResult
from alert_engine.application.services.alert_service import AlertLifecycleManager
from alert_engine.infrastructure.persistence.database.session import open_session
from alert_engine.infrastructure.persistence.repositories.hazard_event_repository import HazardEventRepository
from alert_engine.infrastructure.persistence.repositories.vessel_repository import VesselRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventSnapshot:
    id: object
    kind: str
    position: LatLon
    magnitude: Optional[float]
    depth_km: Optional[float]
    severity_level: Optional[int]
    wave_height_meters: Optional[float]
    location_label: Optional[str]

    @classmethod
    def of(cls, e) -> "EventSnapshot":
        return cls(
            e.id, e.kind, LatLon(e.latitude, e.longitude), e.magnitude, e.depth_km,
            e.severity_level, e.wave_height_meters, e.location_label,
        )


@dataclass(frozen=True)
class VesselSnapshot:
    id: object
    mmsi: str
    name: str
    position: LatLon

    @classmethod
    def of(cls, v) -> "VesselSnapshot":
        return cls(v.id, v.mmsi, v.name, LatLon(v.latest_lat, v.latest_lon))


@dataclass
class SweepReport:
    tick: int
    events: int = 0
    vessels: int = 0
    pairs: int = 0
    in_zone: int = 0
    created: int = 0
    duplicates: int = 0
    errors: int = 0
    alert_ids: list = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "tick": self.tick, "events": self.events, "vessels": self.vessels, "pairs": self.pairs,
            "in_zone": self.in_zone, "created": self.created, "duplicates": self.duplicates,
            "errors": self.errors, "alert_ids": [str(a) for a in self.alert_ids],
        }


class ProximityMonitor:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        lifecycle: AlertLifecycleManager,
        *,
        radii: Optional[Mapping[str, Mapping[str, float]]] = None,
        workers: int = 4,
        position_max_age_minutes: int = 60,
        event_max_age_hours: int = 24,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self.lifecycle = lifecycle
        self.radii = radii
        self.workers = max(1, workers)
        self.position_max_age = timedelta(minutes=position_max_age_minutes)
        self.event_max_age = timedelta(hours=event_max_age_hours)
        self._clock = clock
        self._ticks = 0
        self._tick_lock = threading.Lock()

    @property
    def ticks(self) -> int:
        return self._ticks

    def _next_tick(self) -> int:
        with self._tick_lock:
            self._ticks += 1
            return self._ticks

    def _load(self, now: datetime) -> tuple[list[EventSnapshot], list[VesselSnapshot]]:
        with open_session(self._session_factory) as s:
            events = HazardEventRepository(s).list_active(occurred_since=now - self.event_max_age)
            vessels = VesselRepository(s).list_positioned_since(now - self.position_max_age)
            return [EventSnapshot.of(e) for e in events], [VesselSnapshot.of(v) for v in vessels]

    def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """Un tick complet : tous les évènements actifs × tous les navires récents."""
        now = now or self._clock()
        report = SweepReport(tick=self._next_tick())
        events, vessels = self._load(now)
        report.events, report.vessels = len(events), len(vessels)
        self._run_pairs(itertools.product(events, vessels), now, report)
        logger.info(
            "proximity sweep tick=%d events=%d vessels=%d in_zone=%d created=%d duplicates=%d errors=%d",
            report.tick, report.events, report.vessels, report.in_zone,
            report.created, report.duplicates, report.errors,
        )
        return report

    def evaluate_event(self, event_id, now: Optional[datetime] = None) -> SweepReport:
        """Déclenchement évènementiel : un nouvel évènement × navires récents."""
        now = now or self._clock()
        report = SweepReport(tick=self._next_tick())
        with open_session(self._session_factory) as s:
            event = HazardEventRepository(s).get(event_id)
            if event is None:
                raise NotFoundError("event", id=event_id)
            if not event.active or as_utc(event.occurred_at) < now - self.event_max_age:
                logger.info("evaluate_event skipped: event %s inactive or older than the sweep window", event.id)
                return report
            snapshot = EventSnapshot.of(event)
            vessels = [VesselSnapshot.of(v) for v in VesselRepository(s).list_positioned_since(now - self.position_max_age)]
        report.events, report.vessels = 1, len(vessels)
        self._run_pairs(((snapshot, v) for v in vessels), now, report)
        return report

    def evaluate_vessel(self, vessel_id, now: Optional[datetime] = None) -> SweepReport:
        """Déclenchement évènementiel : nouvelle position × évènements actifs."""
        now = now or self._clock()
        report = SweepReport(tick=self._next_tick())
        with open_session(self._session_factory) as s:
            vessel = VesselRepository(s).get(vessel_id)
            if vessel is None:
                raise NotFoundError("vessel", id=vessel_id)
            if vessel.latest_lat is None or vessel.latest_lon is None:
                return report
            snapshot = VesselSnapshot.of(vessel)
            events = [EventSnapshot.of(e) for e in HazardEventRepository(s).list_active(occurred_since=now - self.event_max_age)]
        report.events, report.vessels = len(events), 1
        self._run_pairs(((e, snapshot) for e in events), now, report)
        return report

    def evaluate_pair(self, event: EventSnapshot, vessel: VesselSnapshot, now: datetime) -> Optional[RouteResult]:
        distance = distance_km(vessel.position, event.position)
        severity = classify_severity(event.kind, distance, self.radii)
        if severity is None:
            return None
        message = build_alert_message(
            vessel_name=vessel.name,
            vessel_mmsi=vessel.mmsi,
            event=event,
            distance_km=distance,
            severity=severity,
            now=now,
        )
        return self.lifecycle.create_and_route(
            vessel.id, event.id, event.kind, severity, distance, vessel.position, message
        )

    def _run_pairs(self, pairs: Iterable[tuple[EventSnapshot, VesselSnapshot]], now: datetime, report: SweepReport) -> None:
        pairs = list(pairs)
        report.pairs += len(pairs)

        def job(pair):
            event, vessel = pair
            try:
                return self.evaluate_pair(event, vessel, now), None
            except Exception as exc:
                logger.exception("proximity evaluation failed vessel=%s event=%s", vessel.id, event.id)
                return None, exc

        if self.workers == 1 or len(pairs) <= 1:
            outcomes = [job(p) for p in pairs]
        else:
            with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="proximity") as pool:
                outcomes = list(pool.map(job, pairs))

        for result, error in outcomes:
            if error is not None:
                report.errors += 1
            elif result is not None:
                report.in_zone += 1
                if result.is_duplicate:
                    report.duplicates += 1
                else:
                    report.created += 1
                    report.alert_ids.append(result.alert.id)
