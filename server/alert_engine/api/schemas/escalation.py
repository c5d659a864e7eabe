from __future__ import annotations
"""server/alert_engine/api/schemas/escalation.py"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from alert_engine.domain.types import Channel, EscalationStep


class EscalationStepOut(BaseModel):
    step_number: int
    wait_minutes: int = Field(..., ge=0)
    channels: list[Channel]
    contact_roles: list[str]
    timeout_minutes: int = Field(default=0, ge=0)


class EscalationPolicyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    event_kinds: list[str]
    severity_levels: list[str]
    steps: list[EscalationStepOut]
    active: bool
    created_at: datetime

    @field_validator("steps", mode="before")
    @classmethod
    def normalize_steps(cls, v):
        # Stocké en JSON libre : on repasse par EscalationStep pour les valeurs par défaut
        return [EscalationStep.from_dict(raw, i).as_dict() for i, raw in enumerate(v or [])]
