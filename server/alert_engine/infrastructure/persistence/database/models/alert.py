from __future__ import annotations
"""server/alert_engine/infrastructure/persistence/database/models/alert.py
~~~~~~~~~~~~~~~~~~~~~~~~
Tables alerts et alert_claims.

alert_claims porte l'unicité (vessel_id, event_id) : c'est le verrou
d'anti-doublon côté store, repris quand l'alerte qu'il désigne n'est plus
active.
"""
import uuid
import datetime as dt

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from alert_engine.infrastructure.persistence.database.base import Base
from alert_engine.infrastructure.persistence.database.types import JSONPortable, TstzPortable, UUIDPortable


class Alert(Base):
    __tablename__ = "alerts"
    __table_args__ = (
        sa.Index("ix_alerts_vessel_event_created", "vessel_id", "event_id", "created_at"),
        sa.Index("ix_alerts_status_expires", "status", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDPortable(), primary_key=True, default=uuid.uuid4)
    vessel_id: Mapped[uuid.UUID] = mapped_column(
        UUIDPortable(), sa.ForeignKey("vessels.id", ondelete="CASCADE"), nullable=False
    )
    event_id: Mapped[uuid.UUID] = mapped_column(
        UUIDPortable(), sa.ForeignKey("hazard_events.id", ondelete="CASCADE"), nullable=False
    )
    event_kind: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    severity: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    distance_km: Mapped[float] = mapped_column(sa.Float, nullable=False)
    coordinates: Mapped[dict] = mapped_column(JSONPortable(), nullable=False)

    message: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    recommendation: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    actions: Mapped[list] = mapped_column(JSONPortable(), nullable=False, default=list)
    tsunami_eta_minutes: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    wave_height_meters: Mapped[float | None] = mapped_column(sa.Float, nullable=True)

    status: Mapped[str] = mapped_column(sa.String(16), nullable=False, default="pending")
    warnings: Mapped[list] = mapped_column(JSONPortable(), nullable=False, default=list)
    escalation_policy_id: Mapped[uuid.UUID | None] = mapped_column(
        UUIDPortable(), sa.ForeignKey("escalation_policies.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[dt.datetime] = mapped_column(
        TstzPortable(), nullable=False, default=lambda: dt.datetime.now(dt.timezone.utc)
    )
    expires_at: Mapped[dt.datetime] = mapped_column(TstzPortable(), nullable=False)
    sent_at: Mapped[dt.datetime | None] = mapped_column(TstzPortable(), nullable=True)
    acknowledged_at: Mapped[dt.datetime | None] = mapped_column(TstzPortable(), nullable=True)
    acknowledged_by: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Alert id={self.id} vessel={self.vessel_id} event={self.event_id} status={self.status}>"


class AlertClaim(Base):
    __tablename__ = "alert_claims"
    __table_args__ = (
        sa.UniqueConstraint("vessel_id", "event_id", name="uq_alert_claims_vessel_event"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDPortable(), primary_key=True, default=uuid.uuid4)
    vessel_id: Mapped[uuid.UUID] = mapped_column(UUIDPortable(), nullable=False)
    event_id: Mapped[uuid.UUID] = mapped_column(UUIDPortable(), nullable=False)
    alert_id: Mapped[uuid.UUID] = mapped_column(UUIDPortable(), nullable=False)
    claimed_at: Mapped[dt.datetime] = mapped_column(TstzPortable(), nullable=False)
