from __future__ import annotations
"""server/alert_engine/api/v1/endpoints/webhooks.py
~~~~~~~~~~~~~~~~~~~~~~~~
Callbacks de statut des providers (delivered / failed).
"""
from fastapi import APIRouter, Depends

from alert_engine.api.deps import get_alert_engine
from alert_engine.api.schemas.ingest import DeliveryStatusCallbackIn
from alert_engine.application.container import AlertEngine
from alert_engine.core.security import operator_auth

router = APIRouter(prefix="/webhooks", dependencies=[Depends(operator_auth)])


@router.post("/delivery-status")
def delivery_status_callback(
    payload: DeliveryStatusCallbackIn,
    engine: AlertEngine = Depends(get_alert_engine),
) -> dict:
    log = engine.dispatcher.record_provider_status(payload.provider_message_id, payload.status, payload.error)
    return {"delivery_id": str(log.id), "status": log.status}
