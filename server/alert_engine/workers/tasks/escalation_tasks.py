# alert_engine/workers/tasks/escalation_tasks.py
from __future__ import annotations

from celery.utils.log import get_task_logger

from alert_engine.workers import runtime
from alert_engine.workers.celery_app import celery

logger = get_task_logger(__name__)


@celery.task(name="tasks.escalation_scan")
def escalation_scan() -> int:
    """
    Scanner des runs d'escalade (beat, toutes les ESCALATION_POLL_SECONDS).
    Un worker tombé en plein traitement libère son run à l'expiration du bail.
    """
    fired = runtime.worker_engine().scheduler.fire_due_runs()
    if fired:
        logger.info("escalation_scan: fired=%d", fired)
    return fired
