from __future__ import annotations
"""alert_engine/workers/runtime.py
~~~~~~~~~~~~~~~~~~~~~~~~
Moteur du processus worker : construit une fois, livraisons via Celery.
"""
from functools import lru_cache

from alert_engine.application.container import AlertEngine, build_engine
from alert_engine.application.services.delivery_service import CeleryDeliveryQueue


@lru_cache(maxsize=1)
def worker_engine() -> AlertEngine:
    return build_engine(queue=CeleryDeliveryQueue())
