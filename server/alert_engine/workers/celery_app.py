from __future__ import annotations
"""alert_engine/workers/celery_app.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Celery app + routage + auto-import des modules de tâches + beat schedule.

Files :
- proximity            : sweeps et évaluations évènementielles
- escalation           : scanner des runs d'escalade
- notify.<canal>       : une file par canal (sms, email, whatsapp, voice),
                         rate limit par canal, un provider lent n'en bloque pas un autre
- maintenance          : expiration des alertes, reprise des livraisons oubliées
"""
from celery import Celery

from alert_engine.core.config import settings
from alert_engine.domain.types import Channel
from alert_engine.workers.scheduler.beat_schedule import build_beat_schedule

celery = Celery("alert_engine", broker=settings.REDIS_URL, backend=settings.REDIS_URL)

# Routage par files
celery.conf.task_routes = {
    "tasks.proximity_sweep": {"queue": "proximity"},
    "tasks.evaluate_event": {"queue": "proximity"},
    "tasks.evaluate_vessel": {"queue": "proximity"},
    "tasks.escalation_scan": {"queue": "escalation"},
    "tasks.retry_failed_deliveries": {"queue": "maintenance"},
    "tasks.expire_alerts": {"queue": "maintenance"},
    "tasks.requeue_stale_deliveries": {"queue": "maintenance"},
    **{f"tasks.deliver.{c.value}": {"queue": f"notify.{c.value}"} for c in Channel},
}

celery.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    timezone="UTC",
    enable_utc=True,
    imports=[
        "alert_engine.workers.tasks.proximity_tasks",
        "alert_engine.workers.tasks.escalation_tasks",
        "alert_engine.workers.tasks.delivery_tasks",
        "alert_engine.workers.tasks.maintenance_tasks",
    ],
)

celery.conf.beat_schedule = build_beat_schedule(settings)
