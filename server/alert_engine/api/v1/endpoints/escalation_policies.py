from __future__ import annotations
"""server/alert_engine/api/v1/endpoints/escalation_policies.py
~~~~~~~~~~~~~~~~~~~~~~~~
GET /escalation-policies (lecture seule).
"""
from fastapi import APIRouter, Depends

from alert_engine.api.deps import get_alert_engine
from alert_engine.api.schemas.escalation import EscalationPolicyOut
from alert_engine.application.container import AlertEngine
from alert_engine.core.security import operator_auth

router = APIRouter(prefix="/escalation-policies", dependencies=[Depends(operator_auth)])


@router.get("", response_model=list[EscalationPolicyOut])
def list_escalation_policies(
    include_inactive: bool = False,
    engine: AlertEngine = Depends(get_alert_engine),
) -> list[EscalationPolicyOut]:
    policies = engine.lifecycle.list_escalation_policies(include_inactive=include_inactive)
    return [EscalationPolicyOut.model_validate(p) for p in policies]
