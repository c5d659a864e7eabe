# server/alert_engine/infrastructure/persistence/repositories/escalation_repository.py
from __future__ import annotations
"""
Repository EscalationPolicy / EscalationRun.

Le scanner ne lit que des ids (`list_due_ids`) ; chaque run est ensuite
réservé par bail (`claim`) avant d'être traité, ce qui permet plusieurs
workers sans double déclenchement.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from alert_engine.core.utils.ids import coerce_uuid
from alert_engine.infrastructure.persistence.database.models.escalation_policy import EscalationPolicy
from alert_engine.infrastructure.persistence.database.models.escalation_run import EscalationRun


class EscalationRepository:
    def __init__(self, session: Session):
        self.s = session

    # --- Policies ----------------------------------------------------------------

    def get_policy(self, policy_id: str | uuid.UUID) -> Optional[EscalationPolicy]:
        pid = coerce_uuid(policy_id)
        return self.s.get(EscalationPolicy, pid) if pid else None

    def list_policies(self, *, include_inactive: bool = False) -> list[EscalationPolicy]:
        stmt = select(EscalationPolicy).order_by(EscalationPolicy.created_at.desc(), EscalationPolicy.name.asc())
        if not include_inactive:
            stmt = stmt.where(EscalationPolicy.active.is_(True))
        return list(self.s.scalars(stmt))

    # --- Runs ---------------------------------------------------------------------

    def get_run(self, run_id: str | uuid.UUID) -> Optional[EscalationRun]:
        rid = coerce_uuid(run_id)
        return self.s.get(EscalationRun, rid) if rid else None

    def get_run_for_alert(self, alert_id: uuid.UUID) -> Optional[EscalationRun]:
        return self.s.scalars(select(EscalationRun).where(EscalationRun.alert_id == alert_id)).first()

    def add_run(self, run: EscalationRun) -> EscalationRun:
        self.s.add(run)
        self.s.flush()
        return run

    def list_due_ids(self, now: datetime, *, limit: int) -> list[uuid.UUID]:
        stmt = (
            select(EscalationRun.id)
            .where(
                EscalationRun.halted_at.is_(None),
                EscalationRun.next_fire_at.is_not(None),
                EscalationRun.next_fire_at <= now,
                or_(EscalationRun.claimed_until.is_(None), EscalationRun.claimed_until < now),
            )
            .order_by(EscalationRun.next_fire_at.asc())
            .limit(limit)
        )
        return list(self.s.scalars(stmt))

    def claim(self, run_id: uuid.UUID, *, now: datetime, lease_until: datetime) -> bool:
        res = self.s.execute(
            update(EscalationRun)
            .where(
                EscalationRun.id == run_id,
                EscalationRun.halted_at.is_(None),
                EscalationRun.next_fire_at <= now,
                or_(EscalationRun.claimed_until.is_(None), EscalationRun.claimed_until < now),
            )
            .values(claimed_until=lease_until)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    def release(self, run_id: uuid.UUID) -> None:
        self.s.execute(
            update(EscalationRun)
            .where(EscalationRun.id == run_id)
            .values(claimed_until=None)
            .execution_options(synchronize_session=False)
        )

    def advance(
        self,
        run_id: uuid.UUID,
        *,
        expected_step: int,
        next_fire_at: Optional[datetime],
        ack_deadline_at: Optional[datetime],
        now: datetime,
    ) -> bool:
        """
        Passe à l'étape suivante (ou arrête le run si `next_fire_at` est None).
        Compare-and-swap sur (current_step, halted_at IS NULL) : un acquittement
        commité entre-temps fait échouer l'avance.
        """
        values = dict(
            current_step=expected_step + 1,
            next_fire_at=next_fire_at,
            ack_deadline_at=ack_deadline_at,
            last_fired_at=now,
            claimed_until=None,
        )
        if next_fire_at is None:
            values.update(halted_at=now, halt_reason="exhausted")
        res = self.s.execute(
            update(EscalationRun)
            .where(
                EscalationRun.id == run_id,
                EscalationRun.current_step == expected_step,
                EscalationRun.halted_at.is_(None),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    def halt_for_alert(self, alert_id: uuid.UUID, *, reason: str, now: datetime) -> bool:
        res = self.s.execute(
            update(EscalationRun)
            .where(EscalationRun.alert_id == alert_id, EscalationRun.halted_at.is_(None))
            .values(halted_at=now, halt_reason=reason, next_fire_at=None, claimed_until=None)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1
