# alert_engine/workers/tasks/proximity_tasks.py
from __future__ import annotations

from celery.utils.log import get_task_logger

from alert_engine.workers import runtime
from alert_engine.workers.celery_app import celery

logger = get_task_logger(__name__)


@celery.task(name="tasks.proximity_sweep")
def proximity_sweep() -> dict:
    """Tick périodique : tous les évènements actifs × navires récents."""
    report = runtime.worker_engine().monitor.sweep()
    return report.as_dict()


@celery.task(name="tasks.evaluate_event")
def evaluate_event(event_id: str) -> dict:
    return runtime.worker_engine().monitor.evaluate_event(event_id).as_dict()


@celery.task(name="tasks.evaluate_vessel")
def evaluate_vessel(vessel_id: str) -> dict:
    return runtime.worker_engine().monitor.evaluate_vessel(vessel_id).as_dict()
