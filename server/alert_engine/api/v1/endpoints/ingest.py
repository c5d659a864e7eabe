from __future__ import annotations
"""server/alert_engine/api/v1/endpoints/ingest.py
~~~~~~~~~~~~~~~~~~~~~~~~
Entrée des adaptateurs amont : évènements et positions déjà normalisés.
L'évaluation de proximité ciblée est faite dans la foulée (evaluate=true).
"""
from fastapi import APIRouter, Depends, status

from alert_engine.api.deps import get_alert_engine
from alert_engine.api.schemas.ingest import HazardEventIn, PositionUpdateIn
from alert_engine.application.container import AlertEngine
from alert_engine.core.security import operator_auth

router = APIRouter(prefix="/ingest", dependencies=[Depends(operator_auth)])


@router.post("/events", status_code=status.HTTP_202_ACCEPTED)
def ingest_event(
    payload: HazardEventIn,
    evaluate: bool = True,
    engine: AlertEngine = Depends(get_alert_engine),
) -> dict:
    event, report = engine.ingestion.upsert_hazard_event(**payload.model_dump(), evaluate=evaluate)
    return {
        "event_id": str(event.id),
        "active": event.active,
        "evaluation": report.as_dict() if report else None,
    }


@router.post("/positions", status_code=status.HTTP_202_ACCEPTED)
def ingest_position(
    payload: PositionUpdateIn,
    evaluate: bool = True,
    engine: AlertEngine = Depends(get_alert_engine),
) -> dict:
    vessel, applied, report = engine.ingestion.apply_position_update(**payload.model_dump(), evaluate=evaluate)
    return {
        "vessel_id": str(vessel.id),
        "applied": applied,
        "evaluation": report.as_dict() if report else None,
    }
