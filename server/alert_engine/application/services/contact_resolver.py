# server/alert_engine/application/services/contact_resolver.py
from __future__ import annotations
"""
Résolution des destinataires d'une alerte pour un navire.

Règles :
- liaison retenue si la sévérité ∈ notify_on ET le contact est actif ;
- ordre : priority croissante (1 = la plus haute), puis role ;
- canaux disponibles : sms si téléphone, email si e-mail, whatsapp si numéro
  WhatsApp ; voice n'est proposé qu'aux contacts ayant un téléphone et
  seulement si l'appelant le demande explicitement (étape d'escalade).
- une étape d'escalade cible des rôles (`resolve_step_contacts`) : contacts
  actifs du rôle, sans filtre notify_on ; une étape sans rôle ne cible personne.
"""

import logging
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from alert_engine.domain.types import Channel, ResolvedContact, Severity
from alert_engine.infrastructure.persistence.database.session import open_session
from alert_engine.infrastructure.persistence.repositories.contact_repository import ContactRepository

logger = logging.getLogger(__name__)


def available_channels(contact) -> tuple[Channel, ...]:
    channels: list[Channel] = []
    if contact.phone:
        channels.append(Channel.SMS)
    if contact.email:
        channels.append(Channel.EMAIL)
    if contact.whatsapp:
        channels.append(Channel.WHATSAPP)
    if contact.phone:
        channels.append(Channel.VOICE)
    return tuple(channels)


def default_channels(resolved: ResolvedContact) -> tuple[Channel, ...]:
    """Canaux utilisés hors escalade (voice exclu)."""
    return tuple(c for c in resolved.channels if c != Channel.VOICE)


class ContactResolver:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def resolve_contacts(
        self, vessel_id, severity: Severity | str, *, session: Optional[Session] = None
    ) -> list[ResolvedContact]:
        return self._run(session, vessel_id, Severity(severity), None)

    def resolve_step_contacts(
        self, vessel_id, roles: Iterable[str], *, session: Optional[Session] = None
    ) -> list[ResolvedContact]:
        wanted = {str(r).lower() for r in roles or ()}
        if not wanted:
            return []
        return self._run(session, vessel_id, None, wanted)

    def _run(self, session, vessel_id, severity, roles) -> list[ResolvedContact]:
        if session is None:
            with open_session(self._session_factory) as s:
                return self._resolve(s, vessel_id, severity, roles)
        return self._resolve(session, vessel_id, severity, roles)

    def _resolve(
        self, s: Session, vessel_id, severity: Optional[Severity], wanted_roles: Optional[set[str]]
    ) -> list[ResolvedContact]:
        out: list[ResolvedContact] = []
        for link in ContactRepository(s).list_active_bindings(vessel_id):
            if severity is not None and severity.value not in {str(x).lower() for x in (link.notify_on or [])}:
                continue
            if wanted_roles is not None and link.role.lower() not in wanted_roles:
                continue
            c = link.contact
            out.append(
                ResolvedContact(
                    contact_id=c.id,
                    name=c.name,
                    role=link.role,
                    priority=link.priority,
                    channels=available_channels(c),
                    phone=c.phone,
                    email=c.email,
                    whatsapp=c.whatsapp,
                )
            )

        # Un contact n'est notifié qu'une fois, au meilleur rang
        seen = set()
        unique: list[ResolvedContact] = []
        for rc in sorted(out, key=lambda x: (x.priority, x.role)):
            if rc.contact_id in seen:
                continue
            seen.add(rc.contact_id)
            unique.append(rc)

        logger.debug(
            "resolved %d contact(s) for vessel=%s severity=%s roles=%s",
            len(unique),
            vessel_id,
            severity.value if severity else None,
            sorted(wanted_roles) if wanted_roles else None,
        )
        return unique
