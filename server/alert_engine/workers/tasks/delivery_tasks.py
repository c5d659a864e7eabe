# alert_engine/workers/tasks/delivery_tasks.py
from __future__ import annotations
"""
Tâches d'envoi : une tâche par canal (`tasks.deliver.<canal>`), routée sur
`notify.<canal>` avec le rate limit du canal (DELIVERY_RATE_LIMITS).

Pas d'autoretry Celery : la ligne DeliveryLog porte l'état (attempts,
status) et les reprises passent par retry_failed_deliveries / requeue.
"""

from celery.utils.log import get_task_logger

from alert_engine.core.config import settings
from alert_engine.domain.types import Channel
from alert_engine.workers import runtime
from alert_engine.workers.celery_app import celery

logger = get_task_logger(__name__)


def _deliver(log_id: str) -> str | None:
    log = runtime.worker_engine().dispatcher.deliver_one(log_id)
    return log.status if log is not None else None


def _make_delivery_task(channel: Channel):
    return celery.task(
        name=f"tasks.deliver.{channel.value}",
        acks_late=True,
        rate_limit=settings.DELIVERY_RATE_LIMITS.get(channel.value),
    )(_deliver)


DELIVERY_TASKS = {channel: _make_delivery_task(channel) for channel in Channel}


@celery.task(name="tasks.retry_failed_deliveries")
def retry_failed_deliveries(alert_id: str) -> int:
    count = runtime.worker_engine().dispatcher.retry_failed_deliveries(alert_id)
    logger.info("retry_failed_deliveries: alert=%s resubmitted=%d", alert_id, count)
    return count
