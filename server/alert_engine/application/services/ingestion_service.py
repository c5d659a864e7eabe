# server/alert_engine/application/services/ingestion_service.py
from __future__ import annotations
"""
Points d'entrée des adaptateurs amont (AIS, USGS/NOAA...) : records déjà
normalisés, sans parsing de protocole.

- upsert_hazard_event : création ou mise à jour (clé source + external_id) ;
  active=False = annulation en amont.
- apply_position_update : seule une position plus récente remplace la dernière.
Les deux peuvent déclencher une évaluation de proximité ciblée.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from alert_engine.core.utils.datetime import as_utc, utcnow
from alert_engine.domain.errors import InvalidInputError
from alert_engine.domain.geo import validate_latlon
from alert_engine.domain.types import EventKind
from alert_engine.application.services.proximity_service import ProximityMonitor, SweepReport
from alert_engine.infrastructure.persistence.database.models.hazard_event import HazardEvent
from alert_engine.infrastructure.persistence.database.models.vessel import Vessel
from alert_engine.infrastructure.persistence.database.session import open_session
from alert_engine.infrastructure.persistence.repositories.hazard_event_repository import HazardEventRepository
from alert_engine.infrastructure.persistence.repositories.vessel_repository import VesselRepository

logger = logging.getLogger(__name__)


class IngestionService:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        monitor: Optional[ProximityMonitor] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self.monitor = monitor
        self._clock = clock

    def upsert_hazard_event(
        self,
        *,
        kind: str,
        latitude: float,
        longitude: float,
        occurred_at: datetime,
        source: str = "manual",
        external_id: Optional[str] = None,
        magnitude: Optional[float] = None,
        depth_km: Optional[float] = None,
        severity_level: Optional[int] = None,
        wave_height_meters: Optional[float] = None,
        location_label: Optional[str] = None,
        active: bool = True,
        evaluate: bool = True,
    ) -> tuple[HazardEvent, Optional[SweepReport]]:
        try:
            event_kind = EventKind(kind.lower() if isinstance(kind, str) else kind)
        except ValueError:
            raise InvalidInputError(f"unknown event kind: {kind!r}", field="kind")
        pos = validate_latlon(latitude, longitude)

        fields = dict(
            kind=event_kind.value,
            latitude=pos.lat,
            longitude=pos.lon,
            occurred_at=as_utc(occurred_at),
            magnitude=magnitude,
            depth_km=depth_km,
            severity_level=severity_level,
            wave_height_meters=wave_height_meters,
            location_label=location_label,
            active=active,
        )
        with open_session(self._session_factory) as s:
            repo = HazardEventRepository(s)
            event = repo.get_by_external(source, external_id) if external_id else None
            if event is None:
                event = repo.add(HazardEvent(id=uuid.uuid4(), source=source, external_id=external_id, **fields))
                logger.info("hazard event ingested", extra={"event_id": str(event.id), "kind": event.kind})
            else:
                for k, v in fields.items():
                    setattr(event, k, v)
                logger.info("hazard event updated", extra={"event_id": str(event.id), "active": active})

        report = None
        if evaluate and active and self.monitor is not None:
            report = self.monitor.evaluate_event(event.id)
        return event, report

    def apply_position_update(
        self,
        *,
        mmsi: str,
        latitude: float,
        longitude: float,
        observed_at: datetime,
        name: Optional[str] = None,
        evaluate: bool = True,
    ) -> tuple[Vessel, bool, Optional[SweepReport]]:
        """Retourne (navire, position_appliquée, rapport d'évaluation éventuel)."""
        if not mmsi or not str(mmsi).strip():
            raise InvalidInputError("mmsi is required", field="mmsi")
        pos = validate_latlon(latitude, longitude)
        observed = as_utc(observed_at)

        with open_session(self._session_factory) as s:
            vessel = VesselRepository(s).get_or_create(mmsi=str(mmsi).strip(), name=name)
            current = as_utc(vessel.position_observed_at)
            applied = current is None or observed > current
            if applied:
                vessel.latest_lat, vessel.latest_lon = pos.lat, pos.lon
                vessel.position_observed_at = observed
            else:
                logger.debug("stale position ignored for %s (%s <= %s)", mmsi, observed, current)

        report = None
        if evaluate and applied and self.monitor is not None:
            report = self.monitor.evaluate_vessel(vessel.id)
        return vessel, applied, report
