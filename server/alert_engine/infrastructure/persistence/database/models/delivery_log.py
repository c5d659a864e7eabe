from __future__ import annotations
"""server/alert_engine/infrastructure/persistence/database/models/delivery_log.py
~~~~~~~~~~~~~~~~~~~~~~~~
Table delivery_logs : une ligne par (alerte, contact, canal, lot d'envoi).
"""
import uuid
import datetime as dt

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from alert_engine.infrastructure.persistence.database.base import Base
from alert_engine.infrastructure.persistence.database.types import TstzPortable, UUIDPortable


class DeliveryLog(Base):
    __tablename__ = "delivery_logs"
    __table_args__ = (
        sa.Index("ix_delivery_logs_status_updated", "status", "updated_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDPortable(), primary_key=True, default=uuid.uuid4)
    alert_id: Mapped[uuid.UUID] = mapped_column(
        UUIDPortable(), sa.ForeignKey("alerts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    contact_id: Mapped[uuid.UUID] = mapped_column(
        UUIDPortable(), sa.ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False
    )
    channel: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    destination: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    body: Mapped[str] = mapped_column(sa.Text, nullable=False)
    subject: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    escalation_step: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)

    status: Mapped[str] = mapped_column(sa.String(16), nullable=False, default="pending")
    attempts: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    last_attempt_at: Mapped[dt.datetime | None] = mapped_column(TstzPortable(), nullable=True)
    provider_message_id: Mapped[str | None] = mapped_column(sa.String(128), nullable=True, index=True)
    error_message: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    delivered_at: Mapped[dt.datetime | None] = mapped_column(TstzPortable(), nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(
        TstzPortable(), nullable=False, default=lambda: dt.datetime.now(dt.timezone.utc)
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        TstzPortable(), nullable=False, default=lambda: dt.datetime.now(dt.timezone.utc),
        onupdate=lambda: dt.datetime.now(dt.timezone.utc),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<DeliveryLog id={self.id} channel={self.channel} status={self.status} attempts={self.attempts}>"
