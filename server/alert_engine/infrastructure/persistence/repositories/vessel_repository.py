# server/alert_engine/infrastructure/persistence/repositories/vessel_repository.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from alert_engine.core.utils.ids import coerce_uuid
from alert_engine.infrastructure.persistence.database.models.vessel import Vessel


class VesselRepository:
    def __init__(self, session: Session):
        self.s = session

    def get(self, vessel_id: str | uuid.UUID) -> Optional[Vessel]:
        vid = coerce_uuid(vessel_id)
        return self.s.get(Vessel, vid) if vid else None

    def get_by_mmsi(self, mmsi: str) -> Optional[Vessel]:
        return self.s.scalars(select(Vessel).where(Vessel.mmsi == mmsi)).first()

    def get_or_create(self, *, mmsi: str, name: Optional[str] = None) -> Vessel:
        vessel = self.get_by_mmsi(mmsi)
        if vessel is None:
            vessel = Vessel(id=uuid.uuid4(), mmsi=mmsi, name=name or f"MMSI {mmsi}")
            self.s.add(vessel)
            self.s.flush()
        elif name and vessel.name != name:
            vessel.name = name
        return vessel

    def list_positioned_since(self, cutoff: datetime) -> list[Vessel]:
        """Navires actifs dont la dernière position est plus récente que `cutoff`."""
        stmt = (
            select(Vessel)
            .where(
                Vessel.active.is_(True),
                Vessel.latest_lat.is_not(None),
                Vessel.latest_lon.is_not(None),
                Vessel.position_observed_at >= cutoff,
            )
            .order_by(Vessel.mmsi)
        )
        return list(self.s.scalars(stmt))
