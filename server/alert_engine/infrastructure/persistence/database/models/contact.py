from __future__ import annotations
"""server/alert_engine/infrastructure/persistence/database/models/contact.py
~~~~~~~~~~~~~~~~~~~~~~~~
Tables contacts et vessel_contacts (rôle, priorité, sévérités notifiées).
"""
import uuid
import datetime as dt

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from alert_engine.infrastructure.persistence.database.base import Base
from alert_engine.infrastructure.persistence.database.types import JSONPortable, TstzPortable, UUIDPortable


class Contact(Base):
    __tablename__ = "contacts"

    id: Mapped[uuid.UUID] = mapped_column(UUIDPortable(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(sa.String(32), nullable=True)
    email: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    whatsapp: Mapped[str | None] = mapped_column(sa.String(32), nullable=True)
    active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        TstzPortable(), nullable=False, default=lambda: dt.datetime.now(dt.timezone.utc)
    )


class VesselContact(Base):
    __tablename__ = "vessel_contacts"
    __table_args__ = (
        sa.UniqueConstraint("vessel_id", "contact_id", name="uq_vessel_contacts_vessel_contact"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDPortable(), primary_key=True, default=uuid.uuid4)
    vessel_id: Mapped[uuid.UUID] = mapped_column(
        UUIDPortable(), sa.ForeignKey("vessels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    contact_id: Mapped[uuid.UUID] = mapped_column(
        UUIDPortable(), sa.ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    priority: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)
    # Liste des sévérités pour lesquelles ce contact est notifié
    notify_on: Mapped[list] = mapped_column(JSONPortable(), nullable=False, default=list)

    contact = relationship("Contact", lazy="joined")
