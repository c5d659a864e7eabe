from __future__ import annotations
"""alert_engine/workers/scheduler/beat_schedule.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Planification périodique des tâches Celery (Beat).
"""


def build_beat_schedule(cfg) -> dict:
    return {
        "proximity-sweep": {
            "task": "tasks.proximity_sweep",
            "schedule": float(cfg.SWEEP_INTERVAL_SECONDS),
        },
        "escalation-scan": {
            "task": "tasks.escalation_scan",
            "schedule": float(cfg.ESCALATION_POLL_SECONDS),
        },
        "expire-alerts": {
            "task": "tasks.expire_alerts",
            "schedule": float(cfg.EXPIRY_SWEEP_SECONDS),
        },
        "requeue-stale-deliveries": {
            "task": "tasks.requeue_stale_deliveries",
            "schedule": float(cfg.DELIVERY_REQUEUE_SECONDS),
        },
    }
