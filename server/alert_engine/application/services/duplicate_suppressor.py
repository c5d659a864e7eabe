# server/alert_engine/application/services/duplicate_suppressor.py
from __future__ import annotations
"""
Anti-doublon (vessel, event).

Deux niveaux :
1) `is_duplicate` / `find_active` : lecture simple (alerte active dans la fenêtre) ;
2) `claim` : réservation atomique dans la transaction de création, adossée à
   la contrainte unique `uq_alert_claims_vessel_event`. L'INSERT du claim est
   la première écriture de la transaction : en cas de conflit, l'appelant
   annule tout et relit. Un claim dont l'alerte n'est plus active (expirée,
   hors fenêtre, absente) est repris par compare-and-swap.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from alert_engine.core.utils.datetime import as_utc, utcnow
from alert_engine.domain.types import ACTIVE_ALERT_STATUSES, AlertStatus
from alert_engine.infrastructure.persistence.database.models.alert import Alert
from alert_engine.infrastructure.persistence.database.session import open_session
from alert_engine.infrastructure.persistence.repositories.alert_repository import AlertRepository

logger = logging.getLogger(__name__)

_ACTIVE = {s.value for s in ACTIVE_ALERT_STATUSES}


class ClaimConflict(Exception):
    """Le couple (vessel, event) est déjà réservé par une alerte active."""

    def __init__(self, existing_alert_id: Optional[uuid.UUID]):
        super().__init__(f"pair already claimed by alert {existing_alert_id}")
        self.existing_alert_id = existing_alert_id


class DuplicateSuppressor:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        window_hours: int = 24,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self.window = timedelta(hours=window_hours)
        self._clock = clock

    def find_active(self, s: Session, vessel_id, event_id, *, now: Optional[datetime] = None) -> Optional[Alert]:
        now = now or self._clock()
        return AlertRepository(s).find_active(vessel_id, event_id, since=now - self.window, now=now)

    def is_duplicate(self, vessel_id, event_id) -> bool:
        with open_session(self._session_factory) as s:
            return self.find_active(s, vessel_id, event_id) is not None

    def claim(self, s: Session, vessel_id, event_id, alert_id: uuid.UUID, *, now: datetime) -> None:
        """
        Réserve (vessel, event) pour `alert_id` dans la transaction `s`.

        Lève ClaimConflict si une alerte active détient le couple ; la session
        est alors déjà annulée (rollback).
        """
        repo = AlertRepository(s)
        try:
            repo.insert_claim(vessel_id=vessel_id, event_id=event_id, alert_id=alert_id, now=now)
            return
        except IntegrityError:
            s.rollback()

        claim = repo.get_claim(vessel_id, event_id)
        if claim is None:
            # Claim supprimé entre-temps : on laisse l'appelant réessayer
            raise ClaimConflict(None)

        holder = repo.get(claim.alert_id)
        if holder is not None and self._holds(holder, now):
            s.rollback()
            raise ClaimConflict(holder.id)

        if repo.take_over_claim(claim.id, expected_alert_id=claim.alert_id, new_alert_id=alert_id, now=now):
            logger.info(
                "stale claim taken over",
                extra={"vessel_id": str(vessel_id), "event_id": str(event_id), "previous_alert_id": str(claim.alert_id)},
            )
            return

        s.rollback()
        raise ClaimConflict(None)

    def _holds(self, alert: Alert, now: datetime) -> bool:
        """Vrai si `alert` occupe encore le couple (statut actif, dans la fenêtre, non échue)."""
        if alert.status not in _ACTIVE:
            return False
        if as_utc(alert.created_at) < now - self.window:
            return False
        if alert.status != AlertStatus.ACKNOWLEDGED.value and as_utc(alert.expires_at) < now:
            return False
        return True
