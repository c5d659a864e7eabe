from __future__ import annotations
"""server/alert_engine/infrastructure/persistence/database/models/__init__.py
~~~~~~~~~~~~~~~~~~~~~~~~
Modèles ORM (register for Alembic).
"""

from .hazard_event import HazardEvent
from .vessel import Vessel
from .contact import Contact, VesselContact
from .alert import Alert, AlertClaim
from .delivery_log import DeliveryLog
from .escalation_policy import EscalationPolicy
from .escalation_run import EscalationRun

__all__ = [
    "HazardEvent", "Vessel", "Contact", "VesselContact", "Alert", "AlertClaim",
    "DeliveryLog", "EscalationPolicy", "EscalationRun",
]
