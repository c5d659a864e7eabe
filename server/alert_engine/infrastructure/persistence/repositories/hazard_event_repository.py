# server/alert_engine/infrastructure/persistence/repositories/hazard_event_repository.py
from __future__ import annotations
"""Repository HazardEvent (lecture pour le moteur, upsert pour l'ingestion)."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from alert_engine.core.utils.ids import coerce_uuid
from alert_engine.infrastructure.persistence.database.models.hazard_event import HazardEvent


class HazardEventRepository:
    def __init__(self, session: Session):
        self.s = session

    def get(self, event_id: str | uuid.UUID) -> Optional[HazardEvent]:
        eid = coerce_uuid(event_id)
        return self.s.get(HazardEvent, eid) if eid else None

    def get_by_external(self, source: str, external_id: str) -> Optional[HazardEvent]:
        stmt = select(HazardEvent).where(
            HazardEvent.source == source,
            HazardEvent.external_id == external_id,
        )
        return self.s.scalars(stmt).first()

    def add(self, event: HazardEvent) -> HazardEvent:
        self.s.add(event)
        self.s.flush()
        return event

    def list_active(self, *, occurred_since: datetime) -> list[HazardEvent]:
        stmt = (
            select(HazardEvent)
            .where(HazardEvent.active.is_(True), HazardEvent.occurred_at >= occurred_since)
            .order_by(HazardEvent.occurred_at.desc())
        )
        return list(self.s.scalars(stmt))
