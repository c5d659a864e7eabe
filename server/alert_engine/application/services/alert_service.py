# server/alert_engine/application/services/alert_service.py
from __future__ import annotations
"""
Alert Lifecycle Manager : propriétaire de l'agrégat Alert.

create_and_route :
  1) doublon (vessel, event) dans la fenêtre → alerte existante, is_duplicate=True ;
  2) alerte `pending` créée avec la réservation anti-doublon (même transaction) ;
  3) aucun contact (notify_on de la sévérité, ou rôles ciblés par les étapes
     quand une politique s'applique) → avertissement "no_contacts", aucune livraison ;
  4) politique d'escalade applicable → run créé, l'étape 0 part tout de suite
     si wait=0 (sinon le scanner la prendra) ; pas de dispatch direct ;
     sinon dispatch direct vers tous les contacts résolus ;
  5) `sent` dès qu'au moins une livraison est émise.

Les notifications partent toujours APRÈS commit.
"""

import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Mapping, Optional

from sqlalchemy.orm import Session

from alert_engine.core.utils.datetime import utcnow
from alert_engine.core.utils.ids import coerce_uuid
from alert_engine.domain.errors import InvalidInputError, NotFoundError
from alert_engine.domain.geo import validate_latlon
from alert_engine.domain.lifecycle import effective_status
from alert_engine.domain.messages import build_actions, build_recommendation, tsunami_eta_minutes
from alert_engine.domain.types import AlertStatus, EventKind, LatLon, RouteResult, RunHaltReason, Severity
from alert_engine.application.services.contact_resolver import ContactResolver
from alert_engine.application.services.delivery_service import DeliveryDispatcher
from alert_engine.application.services.duplicate_suppressor import ClaimConflict, DuplicateSuppressor
from alert_engine.application.services.escalation_service import EscalationScheduler, policy_steps
from alert_engine.infrastructure.persistence.database.models.alert import Alert
from alert_engine.infrastructure.persistence.database.session import open_session
from alert_engine.infrastructure.persistence.repositories.alert_repository import AlertRepository
from alert_engine.infrastructure.persistence.repositories.hazard_event_repository import HazardEventRepository
from alert_engine.infrastructure.persistence.repositories.vessel_repository import VesselRepository

logger = logging.getLogger(__name__)

# Nombre de tentatives de réservation quand un claim change de main en cours de route
_CLAIM_RETRIES = 3


def _parse_enum(enum_cls, value, field: str):
    try:
        return enum_cls(value.lower() if isinstance(value, str) else value)
    except ValueError:
        raise InvalidInputError(f"invalid {field}: {value!r}", field=field)


def _parse_coordinates(coordinates: Any) -> LatLon:
    if isinstance(coordinates, LatLon):
        return validate_latlon(coordinates.lat, coordinates.lon)
    if isinstance(coordinates, Mapping):
        lat = coordinates.get("lat", coordinates.get("latitude"))
        lon = coordinates.get("lon", coordinates.get("longitude"))
        return validate_latlon(lat, lon)
    try:
        lat, lon = coordinates
    except (TypeError, ValueError):
        raise InvalidInputError(f"malformed coordinates: {coordinates!r}", field="coordinates")
    return validate_latlon(lat, lon)


class AlertLifecycleManager:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        suppressor: DuplicateSuppressor,
        resolver: ContactResolver,
        dispatcher: DeliveryDispatcher,
        scheduler: EscalationScheduler,
        *,
        ttl_hours: int = 24,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self.suppressor = suppressor
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.scheduler = scheduler
        self.ttl = timedelta(hours=ttl_hours)
        self._clock = clock

    # --- Création / routage -------------------------------------------------------

    def create_and_route(
        self,
        vessel_id,
        event_id,
        event_kind: EventKind | str,
        severity: Severity | str,
        distance_km: float,
        coordinates: Any,
        message: str,
        *,
        recommendation: Optional[str] = None,
        actions: Optional[Iterable[str]] = None,
        policy_id: Optional[uuid.UUID | str] = None,
    ) -> RouteResult:
        kind = _parse_enum(EventKind, event_kind, "event_kind")
        sev = _parse_enum(Severity, severity, "severity")
        try:
            distance = float(distance_km)
        except (TypeError, ValueError):
            raise InvalidInputError(f"invalid distance_km: {distance_km!r}", field="distance_km")
        if math.isnan(distance) or math.isinf(distance) or distance < 0:
            raise InvalidInputError(f"invalid distance_km: {distance_km!r}", field="distance_km")
        coords = _parse_coordinates(coordinates)
        vid, eid = coerce_uuid(vessel_id), coerce_uuid(event_id)
        if vid is None:
            raise NotFoundError("vessel", id=vessel_id)
        if eid is None:
            raise NotFoundError("event", id=event_id)

        for _ in range(_CLAIM_RETRIES):
            result = self._create(vid, eid, kind, sev, distance, coords, message, recommendation, actions, policy_id)
            if result is not None:
                return result
        # Le claim a changé de main à chaque essai : on relit simplement
        with open_session(self._session_factory) as s:
            existing = self.suppressor.find_active(s, vid, eid, now=self._clock())
        return RouteResult(alert=existing, is_duplicate=True)

    def _create(self, vid, eid, kind, sev, distance, coords, message, recommendation, actions, policy_id):
        now = self._clock()
        alert_id = uuid.uuid4()
        policy_first_wait: Optional[int] = None
        run = None

        with open_session(self._session_factory) as s:
            vessel = VesselRepository(s).get(vid)
            if vessel is None:
                raise NotFoundError("vessel", id=vid)
            event = HazardEventRepository(s).get(eid)
            if event is None:
                raise NotFoundError("event", id=eid)

            existing = self.suppressor.find_active(s, vid, eid, now=now)
            if existing is not None:
                logger.info("duplicate alert skipped", extra={"vessel_id": str(vid), "event_id": str(eid)})
                return RouteResult(alert=existing, is_duplicate=True)

            policy = self.scheduler.select_policy(s, kind, sev, override_id=policy_id)

            try:
                self.suppressor.claim(s, vid, eid, alert_id, now=now)
            except ClaimConflict as conflict:
                if conflict.existing_alert_id is None:
                    return None
                existing = AlertRepository(s).get(conflict.existing_alert_id)
                logger.info("duplicate alert skipped (concurrent)", extra={"alert_id": str(existing.id)})
                return RouteResult(alert=existing, is_duplicate=True)

            alert = AlertRepository(s).add(
                Alert(
                    id=alert_id,
                    vessel_id=vid,
                    event_id=eid,
                    event_kind=kind.value,
                    severity=sev.value,
                    distance_km=distance,
                    coordinates=coords.as_dict(),
                    message=message,
                    recommendation=recommendation or build_recommendation(kind, sev, distance),
                    actions=list(actions) if actions is not None else build_actions(kind, sev),
                    tsunami_eta_minutes=tsunami_eta_minutes(distance) if kind == EventKind.TSUNAMI else None,
                    wave_height_meters=event.wave_height_meters if kind == EventKind.TSUNAMI else None,
                    status=AlertStatus.PENDING.value,
                    warnings=[],
                    escalation_policy_id=policy.id if policy else None,
                    created_at=now,
                    expires_at=now + self.ttl,
                )
            )
            logger.info(
                "alert created",
                extra={"alert_id": str(alert.id), "vessel": vessel.name, "severity": sev.value, "distance_km": round(distance, 1)},
            )

            if policy is not None:
                # Les étapes ciblent des rôles, notify_on ne s'applique pas
                contacts = self.scheduler.policy_recipients(s, vid, policy)
                reason = f"no active contact of vessel {vessel.name} has a role targeted by policy {policy.name}"
            else:
                contacts = self.resolver.resolve_contacts(vid, sev, session=s)
                reason = f"no active contact of vessel {vessel.name} is notified on {sev.value}"
            if not contacts:
                AlertRepository(s).add_warning(alert, "no_contacts", reason, now)
                logger.warning("alert %s has no contacts to notify", alert.id)
                return RouteResult(alert=alert, is_duplicate=False, warning="no_contacts")

            if policy is not None:
                run = self.scheduler.start_run(s, alert, policy, now=now)
                policy_first_wait = policy_steps(policy)[0].wait_minutes

        if run is not None:
            logs = []
            if policy_first_wait == 0:
                logs = self.scheduler.fire_run(run.id, now=now) or []
            return self._result(alert.id, contacts, logs, run)

        logs = self.dispatcher.dispatch(alert, contacts)
        if not logs:
            self._warn(alert.id, "no_deliveries", "resolved contacts have no usable channel")
        return self._result(alert.id, contacts, logs, None)

    def _result(self, alert_id, contacts, logs, run) -> RouteResult:
        with open_session(self._session_factory) as s:
            alert = AlertRepository(s).get(alert_id)
        warning = alert.warnings[-1]["code"] if alert.warnings else None
        return RouteResult(
            alert=alert,
            is_duplicate=False,
            recipient_count=len(contacts),
            delivery_logs=list(logs),
            warning=warning,
            escalation_run=run,
        )

    def _warn(self, alert_id, code: str, message: str) -> None:
        with open_session(self._session_factory) as s:
            alert = AlertRepository(s).get(alert_id)
            if alert is not None:
                AlertRepository(s).add_warning(alert, code, message, self._clock())

    # --- Acquittement / lecture -------------------------------------------------------

    def acknowledge(self, alert_id, acknowledged_by: Optional[str] = None) -> Alert:
        """
        pending|sent → acknowledged et arrêt du run, dans la même transaction.
        Idempotent sur une alerte déjà acquittée ; refusé sur une alerte expirée.
        """
        now = self._clock()
        with open_session(self._session_factory) as s:
            repo = AlertRepository(s)
            alert = repo.get(alert_id, for_update=True)
            if alert is None:
                raise NotFoundError("alert", id=alert_id)
            if alert.status == AlertStatus.ACKNOWLEDGED.value:
                return alert
            if effective_status(alert.status, alert.expires_at, now) == AlertStatus.EXPIRED:
                raise InvalidInputError(f"alert {alert.id} has expired", field="status")

            alert.status = AlertStatus.ACKNOWLEDGED.value
            alert.acknowledged_at = now
            alert.acknowledged_by = acknowledged_by
            self.scheduler.halt_run(s, alert.id, RunHaltReason.ACKNOWLEDGED, now=now)
            logger.info("alert acknowledged", extra={"alert_id": str(alert.id), "by": acknowledged_by})
            return alert

    def get_alert(self, alert_id) -> Alert:
        """Alerte avec expiration paresseuse appliquée au statut renvoyé (rien n'est écrit)."""
        now = self._clock()
        with open_session(self._session_factory) as s:
            alert = AlertRepository(s).get(alert_id)
            if alert is None:
                raise NotFoundError("alert", id=alert_id)
            s.expunge(alert)
        alert.status = effective_status(alert.status, alert.expires_at, now).value
        return alert

    def retry_failed_deliveries(self, alert_id) -> int:
        return self.dispatcher.retry_failed_deliveries(alert_id)

    def delivery_status(self, alert_id) -> dict:
        return self.dispatcher.delivery_status(alert_id)

    def list_escalation_policies(self, include_inactive: bool = False):
        return self.scheduler.list_policies(include_inactive=include_inactive)

    def preview_escalation(self, alert_id) -> dict:
        return self.scheduler.preview_escalation(alert_id)

    def expire_stale(self) -> int:
        """Sweep actif : écrit `expired` sur les alertes échues et arrête leurs runs."""
        now = self._clock()
        with open_session(self._session_factory) as s:
            repo = AlertRepository(s)
            ids = [a.id for a in repo.list_overdue(now)]
            count = repo.mark_expired(ids)
            for aid in ids:
                self.scheduler.halt_run(s, aid, RunHaltReason.EXPIRED, now=now)
        if count:
            logger.info("expired %d alert(s)", count)
        return count
