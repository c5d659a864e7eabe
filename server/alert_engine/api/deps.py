from __future__ import annotations
"""server/alert_engine/api/deps.py
~~~~~~~~~~~~~~~~~~~~~~~~
Dépendances FastAPI : accès au moteur construit pour ce processus.
"""
from fastapi import Request

from alert_engine.application.container import AlertEngine, build_engine
from alert_engine.application.services.delivery_service import CeleryDeliveryQueue


def get_alert_engine(request: Request) -> AlertEngine:
    engine = getattr(request.app.state, "alert_engine", None)
    if engine is None:
        engine = build_engine(queue=CeleryDeliveryQueue())
        request.app.state.alert_engine = engine
    return engine
