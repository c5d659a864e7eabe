# server/alert_engine/infrastructure/persistence/repositories/alert_repository.py
from __future__ import annotations
"""
Repository Alert + AlertClaim.

- `find_active` : alerte occupant le couple (vessel, event) dans la fenêtre.
- `insert_claim` / `take_over_claim` : verrou d'anti-doublon (contrainte
  unique `uq_alert_claims_vessel_event`), pris dans la transaction de l'appelant.
- Aucune méthode ne commit.
"""

import uuid
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import and_, insert, or_, select, update
from sqlalchemy.orm import Session

from alert_engine.core.utils.ids import coerce_uuid
from alert_engine.domain.types import ACTIVE_ALERT_STATUSES, AlertStatus
from alert_engine.infrastructure.persistence.database.models.alert import Alert, AlertClaim

_ACTIVE = [s.value for s in ACTIVE_ALERT_STATUSES]
_EXPIRABLE = [AlertStatus.PENDING.value, AlertStatus.SENT.value]


class AlertRepository:
    def __init__(self, session: Session):
        self.s = session

    def get(self, alert_id: str | uuid.UUID, *, for_update: bool = False) -> Optional[Alert]:
        aid = coerce_uuid(alert_id)
        if aid is None:
            return None
        if for_update:
            return self.s.scalars(select(Alert).where(Alert.id == aid).with_for_update()).first()
        return self.s.get(Alert, aid)

    def add(self, alert: Alert) -> Alert:
        self.s.add(alert)
        self.s.flush()
        return alert

    def find_active(self, vessel_id: uuid.UUID, event_id: uuid.UUID, *, since: datetime, now: datetime) -> Optional[Alert]:
        """
        Alerte (vessel, event) avec status ∈ {pending, sent, acknowledged}
        créée après `since`, hors alertes déjà échues (expiry paresseuse).
        """
        stmt = (
            select(Alert)
            .where(
                Alert.vessel_id == vessel_id,
                Alert.event_id == event_id,
                Alert.status.in_(_ACTIVE),
                Alert.created_at >= since,
                or_(
                    Alert.status == AlertStatus.ACKNOWLEDGED.value,
                    Alert.expires_at >= now,
                ),
            )
            .order_by(Alert.created_at.desc())
        )
        return self.s.scalars(stmt).first()

    # --- Claims ----------------------------------------------------------------

    def insert_claim(self, *, vessel_id, event_id, alert_id, now: datetime) -> None:
        """INSERT brut : lève IntegrityError si le couple est déjà réservé."""
        self.s.execute(
            insert(AlertClaim).values(
                id=uuid.uuid4(), vessel_id=vessel_id, event_id=event_id, alert_id=alert_id, claimed_at=now
            )
        )

    def get_claim(self, vessel_id, event_id) -> Optional[AlertClaim]:
        stmt = select(AlertClaim).where(AlertClaim.vessel_id == vessel_id, AlertClaim.event_id == event_id)
        return self.s.scalars(stmt).first()

    def take_over_claim(self, claim_id, *, expected_alert_id, new_alert_id, now: datetime) -> bool:
        """Compare-and-swap : ne réussit que si le claim désigne toujours `expected_alert_id`."""
        res = self.s.execute(
            update(AlertClaim)
            .where(AlertClaim.id == claim_id, AlertClaim.alert_id == expected_alert_id)
            .values(alert_id=new_alert_id, claimed_at=now)
        )
        return res.rowcount == 1

    # --- Transitions -------------------------------------------------------------

    def mark_sent(self, alert_id, now: datetime) -> bool:
        """pending → sent (une seule fois)."""
        res = self.s.execute(
            update(Alert)
            .where(Alert.id == alert_id, Alert.status == AlertStatus.PENDING.value)
            .values(status=AlertStatus.SENT.value, sent_at=now)
        )
        return res.rowcount == 1

    def list_overdue(self, now: datetime, *, limit: int = 500) -> list[Alert]:
        stmt = (
            select(Alert)
            .where(Alert.status.in_(_EXPIRABLE), Alert.expires_at < now)
            .order_by(Alert.expires_at.asc())
            .limit(limit)
        )
        return list(self.s.scalars(stmt))

    def mark_expired(self, alert_ids: Sequence[uuid.UUID]) -> int:
        if not alert_ids:
            return 0
        res = self.s.execute(
            update(Alert)
            .where(and_(Alert.id.in_(list(alert_ids)), Alert.status.in_(_EXPIRABLE)))
            .values(status=AlertStatus.EXPIRED.value)
        )
        return res.rowcount or 0

    def add_warning(self, alert: Alert, code: str, message: str, now: datetime) -> None:
        """Ajoute une annotation opérateur (liste JSON réassignée pour être détectée)."""
        warnings = list(alert.warnings or [])
        if any(w.get("code") == code and w.get("message") == message for w in warnings):
            return
        warnings.append({"code": code, "message": message, "at": now.isoformat()})
        alert.warnings = warnings
