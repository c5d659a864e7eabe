from __future__ import annotations
"""
server/alert_engine/api/v1/endpoints/alerts.py
~~~~~~~~~~~~~~~~~~~~~~~~
Opérations publiques sur les alertes :
- POST /alerts                          create_and_route (201 créé, 200 doublon)
- GET  /alerts/{id}                     lecture (expiration paresseuse appliquée)
- POST /alerts/{id}/acknowledge         acquittement (arrête l'escalade)
- POST /alerts/{id}/retry-deliveries    re-tente les envois en échec
- GET  /alerts/{id}/delivery-status     résumé des envois
- GET  /alerts/{id}/escalation-preview  étapes restantes simulées (dry run)

Endpoints synchrones (def) : FastAPI les exécute dans son threadpool.
"""
import uuid

from fastapi import APIRouter, Depends, Response, status

from alert_engine.api.deps import get_alert_engine
from alert_engine.api.schemas.alerts import AcknowledgeIn, AlertCreateIn, AlertOut, RouteOut
from alert_engine.application.container import AlertEngine
from alert_engine.core.security import operator_auth

router = APIRouter(prefix="/alerts", dependencies=[Depends(operator_auth)])


@router.post("", response_model=RouteOut, status_code=status.HTTP_201_CREATED)
def create_alert(
    payload: AlertCreateIn,
    response: Response,
    engine: AlertEngine = Depends(get_alert_engine),
) -> RouteOut:
    result = engine.lifecycle.create_and_route(
        payload.vessel_id,
        payload.event_id,
        payload.event_kind,
        payload.severity,
        payload.distance_km,
        payload.coordinates.model_dump(),
        payload.message,
        recommendation=payload.recommendation,
        actions=payload.actions,
        policy_id=payload.policy_id,
    )
    if result.is_duplicate:
        response.status_code = status.HTTP_200_OK
    return RouteOut(
        alert=AlertOut.model_validate(result.alert) if result.alert is not None else None,
        is_duplicate=result.is_duplicate,
        recipient_count=result.recipient_count,
        delivery_count=len(result.delivery_logs),
        warning=result.warning,
    )


@router.get("/{alert_id}", response_model=AlertOut)
def get_alert(alert_id: uuid.UUID, engine: AlertEngine = Depends(get_alert_engine)) -> AlertOut:
    return AlertOut.model_validate(engine.lifecycle.get_alert(alert_id))


@router.post("/{alert_id}/acknowledge", response_model=AlertOut)
def acknowledge_alert(
    alert_id: uuid.UUID,
    payload: AcknowledgeIn | None = None,
    engine: AlertEngine = Depends(get_alert_engine),
) -> AlertOut:
    by = payload.acknowledged_by if payload else None
    return AlertOut.model_validate(engine.lifecycle.acknowledge(alert_id, acknowledged_by=by))


@router.post("/{alert_id}/retry-deliveries")
def retry_deliveries(alert_id: uuid.UUID, engine: AlertEngine = Depends(get_alert_engine)) -> dict:
    count = engine.lifecycle.retry_failed_deliveries(alert_id)
    return {"alert_id": str(alert_id), "resubmitted": count}


@router.get("/{alert_id}/delivery-status")
def delivery_status(alert_id: uuid.UUID, engine: AlertEngine = Depends(get_alert_engine)) -> dict:
    return engine.lifecycle.delivery_status(alert_id)


@router.get("/{alert_id}/escalation-preview")
def escalation_preview(alert_id: uuid.UUID, engine: AlertEngine = Depends(get_alert_engine)) -> dict:
    return engine.lifecycle.preview_escalation(alert_id)
