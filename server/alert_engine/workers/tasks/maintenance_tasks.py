# alert_engine/workers/tasks/maintenance_tasks.py
from __future__ import annotations

from celery.utils.log import get_task_logger

from alert_engine.workers import runtime
from alert_engine.workers.celery_app import celery

logger = get_task_logger(__name__)


@celery.task(name="tasks.expire_alerts")
def expire_alerts() -> int:
    """Sweep actif d'expiration (en plus de l'expiration paresseuse à la lecture)."""
    count = runtime.worker_engine().lifecycle.expire_stale()
    logger.info("expire_alerts: expired=%d", count)
    return count


@celery.task(name="tasks.requeue_stale_deliveries")
def requeue_stale_deliveries() -> int:
    """Re-soumet les DeliveryLog restés `pending` (broker indisponible, worker perdu)."""
    count = runtime.worker_engine().dispatcher.requeue_stale_pending()
    logger.info("requeue_stale_deliveries: requeued=%d", count)
    return count
