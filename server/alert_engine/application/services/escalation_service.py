# server/alert_engine/application/services/escalation_service.py
from __future__ import annotations
"""
Escalation Scheduler : progression temporelle d'une politique d'escalade.

États d'un run : idle → running(step n) → halted.

- Les échéances sont persistées (`next_fire_at`) et relevées par un scanner
  périodique (`fire_due_runs`, tâche beat) : un redémarrage ne perd aucune étape.
- Chaque run dû est réservé par bail (`claimed_until`) avant traitement.
- Dans UNE transaction : relecture de l'état (acquittée ? expirée ? arrêtée ?),
  création des DeliveryLog de l'étape, puis avance par compare-and-swap sur
  (current_step, halted_at IS NULL). Un acquittement commité avant l'avance
  fait échouer le CAS : la transaction est annulée et aucune ligne n'est créée.
- L'attente de l'étape n+1 part du déclenchement de l'étape n.
- timeout_minutes fixe une échéance d'acquittement (`ack_deadline_at`) et le
  texte du message ; l'étape suivante part à son heure, acquittée ou non.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from alert_engine.core.utils.datetime import utcnow
from alert_engine.domain.errors import InvalidInputError, NotFoundError
from alert_engine.domain.lifecycle import effective_status
from alert_engine.domain.messages import build_step_message
from alert_engine.domain.types import AlertStatus, EscalationStep, EventKind, ResolvedContact, RunHaltReason, Severity
from alert_engine.application.services.contact_resolver import ContactResolver, default_channels
from alert_engine.application.services.delivery_service import DeliveryDispatcher
from alert_engine.infrastructure.persistence.database.models.alert import Alert
from alert_engine.infrastructure.persistence.database.models.delivery_log import DeliveryLog
from alert_engine.infrastructure.persistence.database.models.escalation_policy import EscalationPolicy
from alert_engine.infrastructure.persistence.database.models.escalation_run import EscalationRun
from alert_engine.infrastructure.persistence.database.session import open_session
from alert_engine.infrastructure.persistence.repositories.alert_repository import AlertRepository
from alert_engine.infrastructure.persistence.repositories.escalation_repository import EscalationRepository
from alert_engine.infrastructure.persistence.repositories.vessel_repository import VesselRepository

logger = logging.getLogger(__name__)


class _AbortFire(Exception):
    """Avance refusée (run arrêté ou déjà avancé) : annule la transaction de l'étape."""


def policy_steps(policy: EscalationPolicy) -> list[EscalationStep]:
    steps = [EscalationStep.from_dict(raw, i) for i, raw in enumerate(policy.steps or [])]
    return sorted(steps, key=lambda st: st.step_number)


class EscalationScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        dispatcher: DeliveryDispatcher,
        resolver: ContactResolver,
        *,
        batch_size: int = 100,
        lease_seconds: int = 120,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self.dispatcher = dispatcher
        self.resolver = resolver
        self.batch_size = batch_size
        self.lease = timedelta(seconds=lease_seconds)
        self._clock = clock

    # --- Politiques ---------------------------------------------------------------

    def select_policy(
        self,
        s: Session,
        event_kind: EventKind | str,
        severity: Severity | str,
        override_id: Optional[uuid.UUID | str] = None,
    ) -> Optional[EscalationPolicy]:
        """
        Override explicite (active et non vide), sinon la politique active la
        plus récente couvrant (event_kind, severity) et ayant au moins une
        étape ; égalité → nom.
        """
        repo = EscalationRepository(s)
        if override_id is not None:
            policy = repo.get_policy(override_id)
            if policy is None:
                raise NotFoundError("escalation_policy", id=override_id)
            if not policy.active:
                raise InvalidInputError(f"escalation policy {policy.id} is inactive", field="policy_id")
            if not policy_steps(policy):
                raise InvalidInputError(f"escalation policy {policy.id} has no steps", field="policy_id")
            return policy

        kind, sev = EventKind(event_kind).value, Severity(severity).value
        for policy in repo.list_policies():
            kinds = {str(k).lower() for k in (policy.event_kinds or [])}
            levels = {str(x).lower() for x in (policy.severity_levels or [])}
            if kind in kinds and sev in levels and policy.steps:
                return policy
        return None

    def list_policies(self, *, include_inactive: bool = False) -> list[EscalationPolicy]:
        with open_session(self._session_factory) as s:
            return EscalationRepository(s).list_policies(include_inactive=include_inactive)

    def policy_recipients(self, s: Session, vessel_id, policy: EscalationPolicy) -> list[ResolvedContact]:
        """Contacts actifs atteints par au moins une étape de la politique."""
        roles = {role for step in policy_steps(policy) for role in step.contact_roles}
        return self.resolver.resolve_step_contacts(vessel_id, roles, session=s)

    # --- Runs -----------------------------------------------------------------------

    def start_run(self, s: Session, alert: Alert, policy: EscalationPolicy, *, now: datetime) -> EscalationRun:
        """Crée le run (sans commit) ; l'étape 0 est due à now + wait[0]."""
        steps = policy_steps(policy)
        if not steps:
            raise InvalidInputError(f"escalation policy {policy.id} has no steps", field="policy_id")
        run = EscalationRun(
            id=uuid.uuid4(),
            alert_id=alert.id,
            policy_id=policy.id,
            current_step=0,
            next_fire_at=now + timedelta(minutes=steps[0].wait_minutes),
            created_at=now,
        )
        EscalationRepository(s).add_run(run)
        logger.info(
            "escalation run started",
            extra={"alert_id": str(alert.id), "policy": policy.name, "first_fire_at": run.next_fire_at.isoformat()},
        )
        return run

    def halt_run(self, s: Session, alert_id: uuid.UUID, reason: RunHaltReason, *, now: datetime) -> bool:
        halted = EscalationRepository(s).halt_for_alert(alert_id, reason=RunHaltReason(reason).value, now=now)
        if halted:
            logger.info("escalation halted (%s) for alert %s", RunHaltReason(reason).value, alert_id)
        return halted

    def preview_escalation(self, alert_id, now: Optional[datetime] = None) -> dict:
        """
        Simulation (dry run) des étapes restantes d'un run : heure prévue,
        destinataires et canaux de chaque étape. Rien n'est écrit ni envoyé.
        """
        now = now or self._clock()
        with open_session(self._session_factory) as s:
            alert = AlertRepository(s).get(alert_id)
            if alert is None:
                raise NotFoundError("alert", id=alert_id)
            repo = EscalationRepository(s)
            run = repo.get_run_for_alert(alert.id)
            policy = repo.get_policy(alert.escalation_policy_id) if alert.escalation_policy_id else None
            plan = {
                "alert_id": str(alert.id),
                "policy_id": str(policy.id) if policy else None,
                "policy_name": policy.name if policy else None,
                "halted": bool(run and run.halted_at is not None),
                "halt_reason": run.halt_reason if run else None,
                "steps": [],
            }
            if policy is None or run is None or run.halted_at is not None:
                return plan

            steps = policy_steps(policy)
            fire_at = run.next_fire_at or now
            for index in range(run.current_step, len(steps)):
                step = steps[index]
                if index > run.current_step:
                    fire_at = fire_at + timedelta(minutes=step.wait_minutes)
                contacts = self.resolver.resolve_step_contacts(alert.vessel_id, step.contact_roles, session=s)
                recipients = []
                for rc in contacts:
                    for channel in step.channels or default_channels(rc):
                        destination = rc.destination_for(channel) if channel in rc.channels else None
                        if destination:
                            recipients.append(
                                {"contact_id": str(rc.contact_id), "name": rc.name, "role": rc.role,
                                 "channel": channel.value, "destination": destination}
                            )
                plan["steps"].append(
                    {**step.as_dict(), "fire_at": fire_at.isoformat(), "recipients": recipients}
                )
            return plan

    def fire_due_runs(self, now: Optional[datetime] = None) -> int:
        """Scanner : déclenche chaque run échu. Retourne le nombre d'étapes parties."""
        now = now or self._clock()
        with open_session(self._session_factory) as s:
            due = EscalationRepository(s).list_due_ids(now, limit=self.batch_size)

        fired = 0
        for run_id in due:
            try:
                if self.fire_run(run_id, now=now) is not None:
                    fired += 1
            except Exception:
                logger.exception("escalation fire failed for run %s", run_id)
        if due:
            logger.info("escalation scan: due=%d fired=%d", len(due), fired)
        return fired

    def fire_run(self, run_id: uuid.UUID | str, *, now: Optional[datetime] = None) -> Optional[list[DeliveryLog]]:
        """
        Déclenche l'étape courante d'un run échu.
        Retourne les DeliveryLog créés, ou None si rien n'est parti (non réservé,
        arrêté, acquitté, expiré).
        """
        now = now or self._clock()

        with open_session(self._session_factory) as s:
            if not EscalationRepository(s).claim(run_id, now=now, lease_until=now + self.lease):
                return None

        try:
            with open_session(self._session_factory) as s:
                logs = self._fire_claimed(s, run_id, now)
        except _AbortFire:
            logger.info("escalation step for run %s abandoned: run halted concurrently", run_id)
            return None
        except Exception:
            with open_session(self._session_factory) as s:
                EscalationRepository(s).release(run_id)
            raise

        if logs:
            self.dispatcher.submit(logs)
        return logs

    def _fire_claimed(self, s: Session, run_id, now: datetime) -> Optional[list[DeliveryLog]]:
        repo = EscalationRepository(s)
        run = repo.get_run(run_id)
        if run is None or run.halted_at is not None:
            return None

        alerts = AlertRepository(s)
        alert = alerts.get(run.alert_id)
        status = effective_status(alert.status, alert.expires_at, now) if alert else AlertStatus.EXPIRED
        if status == AlertStatus.ACKNOWLEDGED:
            self.halt_run(s, run.alert_id, RunHaltReason.ACKNOWLEDGED, now=now)
            return None
        if status == AlertStatus.EXPIRED:
            if alert is not None:
                alerts.mark_expired([alert.id])
            self.halt_run(s, run.alert_id, RunHaltReason.EXPIRED, now=now)
            return None

        policy = repo.get_policy(run.policy_id)
        steps = policy_steps(policy) if policy else []
        if run.current_step >= len(steps):
            self.halt_run(s, run.alert_id, RunHaltReason.EXHAUSTED, now=now)
            return None

        step = steps[run.current_step]
        contacts = self.resolver.resolve_step_contacts(alert.vessel_id, step.contact_roles, session=s)
        vessel = VesselRepository(s).get(alert.vessel_id)
        text = build_step_message(
            alert,
            vessel_name=vessel.name if vessel else str(alert.vessel_id),
            step_number=step.step_number,
            timeout_minutes=step.timeout_minutes,
        )
        logs = self.dispatcher.stage(
            s, alert, contacts, step.channels or None, text=text, now=now, step_number=step.step_number
        )
        if not logs:
            alerts.add_warning(
                alert,
                "escalation_step_empty",
                f"step {step.step_number}: no contact matched roles {list(step.contact_roles)}",
                now,
            )

        has_next = run.current_step + 1 < len(steps)
        next_fire_at = now + timedelta(minutes=steps[run.current_step + 1].wait_minutes) if has_next else None
        ack_deadline = now + timedelta(minutes=step.timeout_minutes) if step.timeout_minutes > 0 else None
        if not repo.advance(
            run.id, expected_step=run.current_step, next_fire_at=next_fire_at, ack_deadline_at=ack_deadline, now=now
        ):
            raise _AbortFire()

        logger.info(
            "escalation step fired",
            extra={
                "alert_id": str(alert.id),
                "step": step.step_number,
                "deliveries": len(logs),
                "exhausted": not has_next,
            },
        )
        return logs
