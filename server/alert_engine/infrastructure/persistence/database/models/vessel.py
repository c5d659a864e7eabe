from __future__ import annotations
"""server/alert_engine/infrastructure/persistence/database/models/vessel.py
~~~~~~~~~~~~~~~~~~~~~~~~
Table vessels (dernière position connue dénormalisée).
"""
import uuid
import datetime as dt

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from alert_engine.infrastructure.persistence.database.base import Base
from alert_engine.infrastructure.persistence.database.types import TstzPortable, UUIDPortable


class Vessel(Base):
    __tablename__ = "vessels"

    id: Mapped[uuid.UUID] = mapped_column(UUIDPortable(), primary_key=True, default=uuid.uuid4)
    mmsi: Mapped[str] = mapped_column(sa.String(16), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)

    latest_lat: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    latest_lon: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    position_observed_at: Mapped[dt.datetime | None] = mapped_column(TstzPortable(), nullable=True, index=True)

    created_at: Mapped[dt.datetime] = mapped_column(
        TstzPortable(), nullable=False, default=lambda: dt.datetime.now(dt.timezone.utc)
    )
