from __future__ import annotations
"""server/alert_engine/infrastructure/persistence/database/models/hazard_event.py
~~~~~~~~~~~~~~~~~~~~~~~~
Table hazard_events (séismes / tsunamis ingérés).
"""
import uuid
import datetime as dt

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from alert_engine.infrastructure.persistence.database.base import Base
from alert_engine.infrastructure.persistence.database.types import TstzPortable, UUIDPortable


class HazardEvent(Base):
    __tablename__ = "hazard_events"
    __table_args__ = (
        sa.UniqueConstraint("source", "external_id", name="uq_hazard_events_source_external"),
        sa.Index("ix_hazard_events_active_occurred", "active", "occurred_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDPortable(), primary_key=True, default=uuid.uuid4)
    kind: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    source: Mapped[str] = mapped_column(sa.String(32), nullable=False, default="manual")
    external_id: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)

    latitude: Mapped[float] = mapped_column(sa.Float, nullable=False)
    longitude: Mapped[float] = mapped_column(sa.Float, nullable=False)
    magnitude: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    depth_km: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    severity_level: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    wave_height_meters: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    location_label: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)

    occurred_at: Mapped[dt.datetime] = mapped_column(TstzPortable(), nullable=False)
    active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        TstzPortable(), nullable=False, default=lambda: dt.datetime.now(dt.timezone.utc)
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<HazardEvent id={self.id} kind={self.kind} at=({self.latitude},{self.longitude})>"
