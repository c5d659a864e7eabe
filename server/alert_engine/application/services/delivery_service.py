# server/alert_engine/application/services/delivery_service.py
from __future__ import annotations
"""
Delivery Dispatcher : fan-out d'une alerte vers (contact × canal) et suivi
des tentatives.

Flux :
- `dispatch` / `stage` créent les DeliveryLog en `pending` (une ligne par
  contact et canal) dans une transaction, puis APRÈS commit chaque ligne est
  soumise à la file (Celery `notify.<canal>`, ou exécution inline si aucune
  file n'est configurée).
- `deliver_one` réserve une tentative (attempts += 1 par UPDATE conditionnel,
  jamais au-delà du plafond), appelle le provider hors transaction, puis
  écrit le résultat : sent (+ provider_message_id, delivered_at) ou failed
  (+ error_message).
- Les lignes `pending` sont la file durable : `requeue_stale_pending`
  re-soumet celles dont l'envoi n'a jamais abouti (worker tombé, broker
  indisponible).
"""

import logging
import uuid
from collections import Counter
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Protocol

from sqlalchemy.orm import Session

from alert_engine.core.utils.datetime import as_utc, utcnow
from alert_engine.core.utils.ids import coerce_uuid
from alert_engine.domain.errors import NotFoundError
from alert_engine.domain.lifecycle import TERMINAL_STATUSES, effective_status
from alert_engine.domain.messages import ack_url, with_ack_link
from alert_engine.domain.types import AlertStatus, Channel, DeliveryStatus, ResolvedContact, SendResult
from alert_engine.application.services.contact_resolver import default_channels
from alert_engine.infrastructure.notifications.providers.registry import ProviderRegistry
from alert_engine.infrastructure.notifications.templates.loader import render_template
from alert_engine.infrastructure.persistence.database.models.alert import Alert
from alert_engine.infrastructure.persistence.database.models.delivery_log import DeliveryLog
from alert_engine.infrastructure.persistence.database.session import open_session
from alert_engine.infrastructure.persistence.repositories.alert_repository import AlertRepository
from alert_engine.infrastructure.persistence.repositories.delivery_log_repository import DeliveryLogRepository
from alert_engine.infrastructure.persistence.repositories.escalation_repository import EscalationRepository
from alert_engine.infrastructure.persistence.repositories.vessel_repository import VesselRepository

logger = logging.getLogger(__name__)

# Statuts provider (webhook) → statut DeliveryLog
_PROVIDER_STATUS_MAP = {
    "delivered": DeliveryStatus.DELIVERED,
    "read": DeliveryStatus.DELIVERED,
    "failed": DeliveryStatus.FAILED,
    "undelivered": DeliveryStatus.FAILED,
}


class DeliveryQueue(Protocol):
    def submit(self, log_id: uuid.UUID, channel: Channel) -> None:
        ...


class CeleryDeliveryQueue:
    """Soumet chaque envoi à la tâche Celery du canal (file `notify.sms`, ...)."""

    def submit(self, log_id: uuid.UUID, channel: Channel) -> None:
        from alert_engine.workers.tasks.delivery_tasks import DELIVERY_TASKS

        DELIVERY_TASKS[Channel(channel)].apply_async(args=[str(log_id)])


class DeliveryDispatcher:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        providers: ProviderRegistry,
        *,
        queue: Optional[DeliveryQueue] = None,
        max_attempts: int = 3,
        base_url: str = "http://localhost:3000",
        requeue_after_minutes: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self.providers = providers
        self.queue = queue
        self.max_attempts = max_attempts
        self.base_url = base_url
        self.requeue_after = timedelta(minutes=requeue_after_minutes)
        self._clock = clock

    # --- Fan-out ---------------------------------------------------------------

    def stage(
        self,
        s: Session,
        alert: Alert,
        contacts: Iterable[ResolvedContact],
        channels_filter: Optional[Iterable[Channel | str]] = None,
        *,
        text: str,
        now: datetime,
        step_number: Optional[int] = None,
    ) -> list[DeliveryLog]:
        """
        Crée les lignes `pending` (sans commit) et passe l'alerte en `sent`
        si au moins une ligne est créée. L'appelant commit puis appelle `submit`.
        """
        wanted = [Channel(c) for c in channels_filter] if channels_filter is not None else None
        vessel = VesselRepository(s).get(alert.vessel_id)
        vessel_name = vessel.name if vessel else str(alert.vessel_id)

        logs: list[DeliveryLog] = []
        for rc in contacts:
            if wanted is None:
                channels = default_channels(rc)
            else:
                channels = tuple(c for c in wanted if c in rc.channels)
            for channel in channels:
                destination = rc.destination_for(channel)
                if not destination:
                    continue
                subject, body = self._render(channel, alert, text, vessel_name)
                logs.append(
                    DeliveryLog(
                        id=uuid.uuid4(),
                        alert_id=alert.id,
                        contact_id=rc.contact_id,
                        channel=channel.value,
                        destination=destination,
                        subject=subject,
                        body=body,
                        escalation_step=step_number,
                        status=DeliveryStatus.PENDING.value,
                        attempts=0,
                        created_at=now,
                        updated_at=now,
                    )
                )

        if logs:
            DeliveryLogRepository(s).add_all(logs)
            AlertRepository(s).mark_sent(alert.id, now)
        return logs

    def dispatch(
        self,
        alert: Alert,
        contacts: Iterable[ResolvedContact],
        channels_filter: Optional[Iterable[Channel | str]] = None,
        *,
        text: Optional[str] = None,
    ) -> list[DeliveryLog]:
        """
        Fan-out direct : une ligne par contact et canal disponible (restreint
        à `channels_filter` s'il est donné), puis soumission asynchrone.
        Rien n'est créé pour une alerte terminale ou dont l'escalade est arrêtée.
        """
        now = self._clock()
        with open_session(self._session_factory) as s:
            current = AlertRepository(s).get(alert.id)
            if current is None:
                raise NotFoundError("alert", id=alert.id)
            if effective_status(current.status, current.expires_at, now) in TERMINAL_STATUSES:
                logger.info("dispatch skipped: alert %s is %s", current.id, current.status)
                return []
            run = EscalationRepository(s).get_run_for_alert(current.id)
            if run is not None and run.halted_at is not None:
                logger.info("dispatch skipped: escalation halted for alert %s", current.id)
                return []
            logs = self.stage(s, current, contacts, channels_filter, text=text or current.message, now=now)

        self.submit(logs)
        return logs

    def submit(self, logs: Iterable[DeliveryLog]) -> None:
        """Soumet les lignes déjà commitées ; un échec de file laisse la ligne `pending`."""
        for log in logs:
            try:
                if self.queue is None:
                    self.deliver_one(log.id)
                else:
                    self.queue.submit(log.id, Channel(log.channel))
            except Exception:
                logger.exception("failed to submit delivery %s (%s)", log.id, log.channel)

    # --- Tentative unitaire ------------------------------------------------------

    def deliver_one(self, log_id: str | uuid.UUID) -> Optional[DeliveryLog]:
        """
        Une tentative d'envoi. Retourne la ligne mise à jour, ou None si la
        tentative n'a pas pu être réservée (plafond atteint, déjà envoyée,
        prise par un autre worker).
        """
        now = self._clock()
        with open_session(self._session_factory) as s:
            repo = DeliveryLogRepository(s)
            log = repo.get(log_id)
            if log is None:
                logger.warning("delivery %s not found", log_id)
                return None
            if not repo.claim_attempt(log, max_attempts=self.max_attempts, now=now):
                logger.info(
                    "delivery %s not attempted (status=%s attempts=%s)", log.id, log.status, log.attempts
                )
                return None
            s.refresh(log)
            channel, destination, body, subject = Channel(log.channel), log.destination, log.body, log.subject
            attempt, claimed_id = log.attempts, log.id

        result: SendResult = self.providers.send(channel, destination, body, subject=subject)
        return self._record_attempt(claimed_id, result, attempt)

    def _record_attempt(self, log_id: uuid.UUID, result: SendResult, attempt: int) -> Optional[DeliveryLog]:
        now = self._clock()
        with open_session(self._session_factory) as s:
            log = DeliveryLogRepository(s).get(log_id)
            if log is None:
                return None
            log.updated_at = now
            if result.success:
                log.status = DeliveryStatus.SENT.value
                log.provider_message_id = result.provider_message_id
                log.delivered_at = now
                log.error_message = None
                logger.info(
                    "delivery sent",
                    extra={"delivery_id": str(log.id), "channel": log.channel, "attempt": attempt},
                )
            else:
                log.status = DeliveryStatus.FAILED.value
                log.error_message = (result.error or "unknown provider error")[:2000]
                logger.warning(
                    "delivery failed: %s", log.error_message,
                    extra={"delivery_id": str(log.id), "channel": log.channel, "attempt": attempt},
                )
                if attempt >= self.max_attempts:
                    self._warn_exhausted(s, log, now)
            return log

    def _warn_exhausted(self, s: Session, log: DeliveryLog, now: datetime) -> None:
        alert = AlertRepository(s).get(log.alert_id)
        if alert is not None:
            AlertRepository(s).add_warning(
                alert,
                "delivery_exhausted",
                f"{log.channel} delivery to {log.destination} failed after {log.attempts} attempts",
                now,
            )

    # --- Reprises -------------------------------------------------------------------

    def retry_failed_deliveries(self, alert_id: str | uuid.UUID) -> int:
        """Re-tente chaque ligne `failed` sous le plafond. Retourne le nombre de lignes re-soumises."""
        aid = coerce_uuid(alert_id)
        with open_session(self._session_factory) as s:
            if aid is None or AlertRepository(s).get(aid) is None:
                raise NotFoundError("alert", id=alert_id)
            logs = DeliveryLogRepository(s).list_retryable_failed(aid, max_attempts=self.max_attempts)

        self.submit(logs)
        logger.info("retry_failed_deliveries alert=%s resubmitted=%d", aid, len(logs))
        return len(logs)

    def requeue_stale_pending(self) -> int:
        """
        Re-soumet les lignes `pending` oubliées. Celles dont la dernière
        tentative (plafond atteint) n'a jamais rendu de résultat passent `failed`.
        """
        now = self._clock()
        cutoff = now - self.requeue_after
        to_submit: list[DeliveryLog] = []
        with open_session(self._session_factory) as s:
            for log in DeliveryLogRepository(s).list_stale_pending(cutoff):
                if log.attempts >= self.max_attempts:
                    log.status = DeliveryStatus.FAILED.value
                    log.error_message = "attempt outcome unknown (worker lost)"
                    log.updated_at = now
                    self._warn_exhausted(s, log, now)
                else:
                    to_submit.append(log)

        self.submit(to_submit)
        if to_submit:
            logger.info("requeued %d stale pending deliveries", len(to_submit))
        return len(to_submit)

    def record_provider_status(
        self, provider_message_id: str, status: str, error: Optional[str] = None
    ) -> Optional[DeliveryLog]:
        """Callback provider (webhook) : delivered / failed. Les statuts intermédiaires sont ignorés."""
        target = _PROVIDER_STATUS_MAP.get((status or "").lower())
        now = self._clock()
        with open_session(self._session_factory) as s:
            log = DeliveryLogRepository(s).find_by_provider_id(provider_message_id)
            if log is None:
                raise NotFoundError("delivery", provider_message_id=provider_message_id)
            if target is None or log.status == DeliveryStatus.DELIVERED.value:
                return log
            log.status = target.value
            log.updated_at = now
            if target == DeliveryStatus.DELIVERED:
                log.delivered_at = now
            else:
                log.error_message = error or f"provider reported {status}"
            logger.info("provider status %s for delivery %s", target.value, log.id)
            return log

    # --- Lecture ----------------------------------------------------------------------

    def delivery_status(self, alert_id: str | uuid.UUID) -> dict:
        """Résumé des envois d'une alerte (comptes, canaux, taux, temps de réponse)."""
        aid = coerce_uuid(alert_id)
        now = self._clock()
        with open_session(self._session_factory) as s:
            alert = AlertRepository(s).get(aid) if aid else None
            if alert is None:
                raise NotFoundError("alert", id=alert_id)
            logs = DeliveryLogRepository(s).list_for_alert(alert.id)

            by_status = Counter(log.status for log in logs)
            by_channel: dict[str, dict[str, int]] = {}
            for log in logs:
                bucket = by_channel.setdefault(log.channel, {"total": 0, **{st.value: 0 for st in DeliveryStatus}})
                bucket["total"] += 1
                bucket[log.status] += 1

            total = len(logs)
            ok = by_status[DeliveryStatus.SENT.value] + by_status[DeliveryStatus.DELIVERED.value]
            response_time = None
            if alert.acknowledged_at and alert.sent_at:
                response_time = int((as_utc(alert.acknowledged_at) - as_utc(alert.sent_at)).total_seconds())

            return {
                "alert_id": alert.id,
                "alert_status": effective_status(alert.status, alert.expires_at, now).value,
                "total": total,
                "by_status": {st.value: by_status[st.value] for st in DeliveryStatus},
                "by_channel": by_channel,
                "unique_contacts": len({log.contact_id for log in logs}),
                "delivery_rate": round(ok * 100.0 / total, 1) if total else 0.0,
                "response_time_seconds": response_time,
                "acknowledged": alert.status == AlertStatus.ACKNOWLEDGED.value,
                "deliveries": [
                    {
                        "id": log.id,
                        "contact_id": log.contact_id,
                        "channel": log.channel,
                        "status": log.status,
                        "attempts": log.attempts,
                        "escalation_step": log.escalation_step,
                        "last_attempt_at": log.last_attempt_at,
                        "delivered_at": log.delivered_at,
                        "provider_message_id": log.provider_message_id,
                        "error_message": log.error_message,
                    }
                    for log in logs
                ],
            }

    # --- Rendu --------------------------------------------------------------------------

    def _render(self, channel: Channel, alert: Alert, text: str, vessel_name: str) -> tuple[Optional[str], str]:
        if channel == Channel.EMAIL:
            subject = render_template(
                "alert_email_subject.txt",
                severity=str(alert.severity).upper(),
                event_kind=str(alert.event_kind).capitalize(),
                vessel_name=vessel_name,
            )
            body = render_template("alert_email_body.txt", body=text, ack_url=ack_url(self.base_url, alert.id))
            return subject, body
        if channel == Channel.VOICE:
            return None, text
        return None, with_ack_link(text, self.base_url, alert.id)
