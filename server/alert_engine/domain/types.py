# server/alert_engine/domain/types.py
from __future__ import annotations
"""
Types du domaine (indépendants de l'ORM).

- Enums "str" : sérialisables tels quels en JSON / DB.
- Dataclasses figées pour les valeurs échangées entre services.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Optional


class EventKind(str, enum.Enum):
    EARTHQUAKE = "earthquake"
    TSUNAMI = "tsunami"


class Severity(str, enum.Enum):
    """Paliers de sévérité, strictement ordonnés low < moderate < high < critical."""
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


SEVERITY_ORDER: tuple[Severity, ...] = (
    Severity.LOW,
    Severity.MODERATE,
    Severity.HIGH,
    Severity.CRITICAL,
)


class AlertStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    ACKNOWLEDGED = "acknowledged"
    EXPIRED = "expired"


# Statuts qui "occupent" le couple (vessel, event) pour l'anti-doublon
ACTIVE_ALERT_STATUSES = (AlertStatus.PENDING, AlertStatus.SENT, AlertStatus.ACKNOWLEDGED)


class Channel(str, enum.Enum):
    SMS = "sms"
    EMAIL = "email"
    WHATSAPP = "whatsapp"
    VOICE = "voice"


class DeliveryStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


class RunHaltReason(str, enum.Enum):
    ACKNOWLEDGED = "acknowledged"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class LatLon:
    lat: float
    lon: float

    def as_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}


@dataclass(frozen=True)
class ResolvedContact:
    """Destinataire retenu pour un navire, avec ses canaux disponibles."""
    contact_id: Any
    name: str
    role: str
    priority: int
    channels: tuple[Channel, ...]
    phone: Optional[str] = None
    email: Optional[str] = None
    whatsapp: Optional[str] = None

    def destination_for(self, channel: Channel) -> Optional[str]:
        if channel in (Channel.SMS, Channel.VOICE):
            return self.phone
        if channel == Channel.EMAIL:
            return self.email
        if channel == Channel.WHATSAPP:
            return self.whatsapp
        return None


@dataclass(frozen=True)
class SendResult:
    """Résultat opaque d'un provider : jamais d'exception, une chaîne d'erreur."""
    success: bool
    provider_message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class RouteResult:
    """Retour de create_and_route : créé ou doublon (issue idempotente)."""
    alert: Any
    is_duplicate: bool
    recipient_count: int = 0
    delivery_logs: list[Any] = field(default_factory=list)
    warning: Optional[str] = None
    escalation_run: Any = None


@dataclass(frozen=True)
class EscalationStep:
    """Étape d'une politique d'escalade (stockée en JSON sur la politique)."""
    step_number: int
    wait_minutes: int
    channels: tuple[Channel, ...]
    contact_roles: tuple[str, ...]
    timeout_minutes: int = 0

    @classmethod
    def from_dict(cls, raw: dict[str, Any], index: int) -> "EscalationStep":
        return cls(
            step_number=int(raw.get("step_number", index + 1)),
            wait_minutes=max(0, int(raw.get("wait_minutes", 0))),
            channels=tuple(Channel(c) for c in raw.get("channels", ())),
            contact_roles=tuple(raw.get("contact_roles", ())),
            timeout_minutes=max(0, int(raw.get("timeout_minutes", 0))),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "step_number": self.step_number,
            "wait_minutes": self.wait_minutes,
            "channels": [c.value for c in self.channels],
            "contact_roles": list(self.contact_roles),
            "timeout_minutes": self.timeout_minutes,
        }
