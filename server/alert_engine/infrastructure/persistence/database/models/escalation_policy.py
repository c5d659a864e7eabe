from __future__ import annotations
"""server/alert_engine/infrastructure/persistence/database/models/escalation_policy.py
~~~~~~~~~~~~~~~~~~~~~~~~
Table escalation_policies.

steps : liste ordonnée de
    {"step_number": int, "wait_minutes": int, "timeout_minutes": int,
     "contact_roles": [str], "channels": [str]}
"""
import uuid
import datetime as dt

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from alert_engine.infrastructure.persistence.database.base import Base
from alert_engine.infrastructure.persistence.database.types import JSONPortable, TstzPortable, UUIDPortable


class EscalationPolicy(Base):
    __tablename__ = "escalation_policies"

    id: Mapped[uuid.UUID] = mapped_column(UUIDPortable(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    event_kinds: Mapped[list] = mapped_column(JSONPortable(), nullable=False, default=list)
    severity_levels: Mapped[list] = mapped_column(JSONPortable(), nullable=False, default=list)
    steps: Mapped[list] = mapped_column(JSONPortable(), nullable=False, default=list)
    active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        TstzPortable(), nullable=False, default=lambda: dt.datetime.now(dt.timezone.utc)
    )
