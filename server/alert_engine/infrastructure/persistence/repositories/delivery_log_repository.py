# server/alert_engine/infrastructure/persistence/repositories/delivery_log_repository.py
from __future__ import annotations
"""
Repository DeliveryLog.

`claim_attempt` est le seul chemin qui incrémente `attempts` : UPDATE
conditionnel (compare-and-swap sur attempts/status) borné par le plafond.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from alert_engine.core.utils.ids import coerce_uuid
from alert_engine.domain.types import DeliveryStatus
from alert_engine.infrastructure.persistence.database.models.delivery_log import DeliveryLog

_RETRYABLE = [DeliveryStatus.PENDING.value, DeliveryStatus.FAILED.value]


class DeliveryLogRepository:
    def __init__(self, session: Session):
        self.s = session

    def get(self, log_id: str | uuid.UUID) -> Optional[DeliveryLog]:
        lid = coerce_uuid(log_id)
        return self.s.get(DeliveryLog, lid) if lid else None

    def add_all(self, logs: list[DeliveryLog]) -> list[DeliveryLog]:
        self.s.add_all(logs)
        self.s.flush()
        return logs

    def list_for_alert(self, alert_id: uuid.UUID) -> list[DeliveryLog]:
        stmt = select(DeliveryLog).where(DeliveryLog.alert_id == alert_id).order_by(DeliveryLog.created_at.asc())
        return list(self.s.scalars(stmt))

    def list_retryable_failed(self, alert_id: uuid.UUID, *, max_attempts: int) -> list[DeliveryLog]:
        stmt = (
            select(DeliveryLog)
            .where(
                DeliveryLog.alert_id == alert_id,
                DeliveryLog.status == DeliveryStatus.FAILED.value,
                DeliveryLog.attempts < max_attempts,
            )
            .order_by(DeliveryLog.created_at.asc())
        )
        return list(self.s.scalars(stmt))

    def find_by_provider_id(self, provider_message_id: str) -> Optional[DeliveryLog]:
        stmt = select(DeliveryLog).where(DeliveryLog.provider_message_id == provider_message_id)
        return self.s.scalars(stmt).first()

    def list_stale_pending(self, cutoff: datetime, *, limit: int = 500) -> list[DeliveryLog]:
        """Lignes pending jamais tentées ou dont la dernière tentative est plus vieille que `cutoff`."""
        stmt = (
            select(DeliveryLog)
            .where(
                DeliveryLog.status == DeliveryStatus.PENDING.value,
                or_(
                    and_(DeliveryLog.last_attempt_at.is_(None), DeliveryLog.created_at <= cutoff),
                    DeliveryLog.last_attempt_at <= cutoff,
                ),
            )
            .order_by(DeliveryLog.created_at.asc())
            .limit(limit)
        )
        return list(self.s.scalars(stmt))

    def claim_attempt(self, log: DeliveryLog, *, max_attempts: int, now: datetime) -> bool:
        """
        Réserve une tentative : attempts += 1 seulement si la ligne est encore
        dans l'état lu (même attempts, même status) et sous le plafond.
        """
        if log.status not in _RETRYABLE or log.attempts >= max_attempts:
            return False
        res = self.s.execute(
            update(DeliveryLog)
            .where(
                DeliveryLog.id == log.id,
                DeliveryLog.attempts == log.attempts,
                DeliveryLog.status == log.status,
                DeliveryLog.attempts < max_attempts,
            )
            .values(
                attempts=DeliveryLog.attempts + 1,
                status=DeliveryStatus.PENDING.value,
                last_attempt_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1
