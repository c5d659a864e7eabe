# server/alert_engine/domain/lifecycle.py
from __future__ import annotations
"""
Machine d'états de l'alerte : pending → sent → acknowledged, pending|sent → expired.

L'expiration est paresseuse : une alerte non terminale dont expires_at est
strictement passé est *rapportée* expirée, même si aucun sweep ne l'a encore écrite.
"""

from datetime import datetime
from typing import Optional

from alert_engine.core.utils.datetime import as_utc
from alert_engine.domain.types import AlertStatus

TERMINAL_STATUSES = (AlertStatus.ACKNOWLEDGED, AlertStatus.EXPIRED)


def effective_status(status: str, expires_at: Optional[datetime], now: datetime) -> AlertStatus:
    current = AlertStatus(status)
    if current in TERMINAL_STATUSES:
        return current
    if expires_at is not None and as_utc(expires_at) < now:
        return AlertStatus.EXPIRED
    return current

