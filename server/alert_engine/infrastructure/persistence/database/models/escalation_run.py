from __future__ import annotations
"""server/alert_engine/infrastructure/persistence/database/models/escalation_run.py
~~~~~~~~~~~~~~~~~~~~~~~~
Table escalation_runs : état persistant d'une escalade (une par alerte).

current_step   : index de la prochaine étape à déclencher
next_fire_at   : échéance de cette étape (NULL une fois arrêtée)
claimed_until  : bail du worker qui traite l'étape
halted_at      : non NULL => plus aucune étape ne part
"""
import uuid
import datetime as dt

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from alert_engine.infrastructure.persistence.database.base import Base
from alert_engine.infrastructure.persistence.database.types import TstzPortable, UUIDPortable


class EscalationRun(Base):
    __tablename__ = "escalation_runs"
    __table_args__ = (
        sa.Index("ix_escalation_runs_due", "halted_at", "next_fire_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDPortable(), primary_key=True, default=uuid.uuid4)
    alert_id: Mapped[uuid.UUID] = mapped_column(
        UUIDPortable(), sa.ForeignKey("alerts.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    policy_id: Mapped[uuid.UUID] = mapped_column(
        UUIDPortable(), sa.ForeignKey("escalation_policies.id", ondelete="CASCADE"), nullable=False
    )
    current_step: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    next_fire_at: Mapped[dt.datetime | None] = mapped_column(TstzPortable(), nullable=True)
    claimed_until: Mapped[dt.datetime | None] = mapped_column(TstzPortable(), nullable=True)
    ack_deadline_at: Mapped[dt.datetime | None] = mapped_column(TstzPortable(), nullable=True)
    last_fired_at: Mapped[dt.datetime | None] = mapped_column(TstzPortable(), nullable=True)
    halted_at: Mapped[dt.datetime | None] = mapped_column(TstzPortable(), nullable=True)
    halt_reason: Mapped[str | None] = mapped_column(sa.String(32), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        TstzPortable(), nullable=False, default=lambda: dt.datetime.now(dt.timezone.utc)
    )
