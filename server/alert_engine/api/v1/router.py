from __future__ import annotations
"""server/alert_engine/api/v1/router.py
~~~~~~~~~~~~~~~~~~~~~~~~
Router principal API v1.
"""
from fastapi import APIRouter

from alert_engine.api.v1.endpoints import alerts, escalation_policies, health, ingest, webhooks

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(alerts.router, tags=["alerts"])
api_router.include_router(escalation_policies.router, tags=["escalation-policies"])
api_router.include_router(ingest.router, tags=["ingest"])
api_router.include_router(webhooks.router, tags=["webhooks"])
