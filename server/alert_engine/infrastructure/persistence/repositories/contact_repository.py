# server/alert_engine/infrastructure/persistence/repositories/contact_repository.py
from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from alert_engine.infrastructure.persistence.database.models.contact import Contact, VesselContact


class ContactRepository:
    def __init__(self, session: Session):
        self.s = session

    def list_active_bindings(self, vessel_id: uuid.UUID) -> list[VesselContact]:
        """Liaisons navire ↔ contact dont le contact est actif, ordre (priority, role)."""
        stmt = (
            select(VesselContact)
            .join(Contact, Contact.id == VesselContact.contact_id)
            .where(VesselContact.vessel_id == vessel_id, Contact.active.is_(True))
            .order_by(VesselContact.priority.asc(), VesselContact.role.asc())
        )
        return list(self.s.scalars(stmt).unique())

    def add_contact(self, contact: Contact) -> Contact:
        self.s.add(contact)
        self.s.flush()
        return contact

    def bind(self, *, vessel_id, contact_id, role: str, priority: int, notify_on: list[str]) -> VesselContact:
        link = VesselContact(
            id=uuid.uuid4(),
            vessel_id=vessel_id,
            contact_id=contact_id,
            role=role,
            priority=priority,
            notify_on=list(notify_on),
        )
        self.s.add(link)
        self.s.flush()
        return link
