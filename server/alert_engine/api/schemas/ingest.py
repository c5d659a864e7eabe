from __future__ import annotations
"""
server/alert_engine/api/schemas/ingest.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Records normalisés poussés par les adaptateurs amont (AIS, flux sismiques).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from alert_engine.domain.types import EventKind


class HazardEventIn(BaseModel):
    kind: EventKind
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    occurred_at: datetime
    source: str = Field(default="manual", max_length=32)
    external_id: Optional[str] = Field(default=None, max_length=128)
    magnitude: Optional[float] = None
    depth_km: Optional[float] = None
    severity_level: Optional[int] = None
    wave_height_meters: Optional[float] = Field(default=None, ge=0)
    location_label: Optional[str] = Field(default=None, max_length=255)
    active: bool = True


class PositionUpdateIn(BaseModel):
    mmsi: str = Field(..., min_length=1, max_length=16)
    name: Optional[str] = Field(default=None, max_length=255)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    observed_at: datetime


class DeliveryStatusCallbackIn(BaseModel):
    provider_message_id: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)
    error: Optional[str] = None
