from __future__ import annotations
"""
server/alert_engine/api/schemas/alerts.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Pydantic schemas des alertes.

- `AlertCreateIn` : déclenchement manuel / externe de create_and_route.
- Les sorties sont construites depuis les modèles ORM (from_attributes).
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from alert_engine.domain.types import EventKind, Severity


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class AlertCreateIn(BaseModel):
    vessel_id: uuid.UUID
    event_id: uuid.UUID
    event_kind: EventKind
    severity: Severity
    distance_km: float = Field(..., ge=0)
    coordinates: Coordinates
    message: str = Field(..., min_length=1, max_length=4000)
    recommendation: Optional[str] = None
    actions: Optional[list[str]] = None
    policy_id: Optional[uuid.UUID] = None


class AcknowledgeIn(BaseModel):
    acknowledged_by: Optional[str] = Field(default=None, max_length=255)


class AlertOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    vessel_id: uuid.UUID
    event_id: uuid.UUID
    event_kind: str
    severity: str
    distance_km: float
    coordinates: dict[str, float]
    message: str
    recommendation: Optional[str] = None
    actions: list[str] = []
    status: str
    warnings: list[dict[str, Any]] = []
    tsunami_eta_minutes: Optional[int] = None
    wave_height_meters: Optional[float] = None
    escalation_policy_id: Optional[uuid.UUID] = None
    created_at: datetime
    expires_at: datetime
    sent_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None


class RouteOut(BaseModel):
    alert: Optional[AlertOut]
    is_duplicate: bool
    recipient_count: int = 0
    delivery_count: int = 0
    warning: Optional[str] = None
