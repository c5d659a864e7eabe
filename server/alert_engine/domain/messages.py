# server/alert_engine/domain/messages.py

from __future__ import annotations
"""
Textes métier attachés à une alerte : recommandation, actions, message,
ETA tsunami. Fonctions pures.
"""

from datetime import datetime
from typing import Any, Optional

from alert_engine.domain.types import EventKind, Severity

# Vitesse de propagation d'un tsunami en eau profonde
TSUNAMI_SPEED_KMH = 800.0

SEVERITY_EMOJI = {
    Severity.CRITICAL: "🔴",
    Severity.HIGH: "🟠",
    Severity.MODERATE: "🟡",
    Severity.LOW: "🟢",
}


def tsunami_eta_minutes(distance_km: float) -> int:
    return int(round(distance_km / TSUNAMI_SPEED_KMH * 60))


def build_recommendation(event_kind: EventKind, severity: Severity, distance_km: float) -> str:
    kind = EventKind(event_kind).value.upper()
    d = f"{distance_km:.0f}km"
    severity = Severity(severity)

    if severity == Severity.CRITICAL:
        return (
            f"IMMEDIATE ACTION REQUIRED: {kind} detected {d} from your position. "
            "Evacuate danger zone immediately. Contact shore operations and nearest port authority. "
            "Monitor all channels for updates."
        )
    if severity == Severity.HIGH:
        return (
            f"HIGH PRIORITY: {kind} alert at {d} distance. Monitor situation closely. "
            "Prepare emergency procedures. Update voyage plan if necessary. Maintain radio watch."
        )
    if severity == Severity.MODERATE:
        return (
            f"ADVISORY: {kind} detected {d} away. Monitor developments closely. "
            "Review emergency procedures. No immediate action required unless situation changes."
        )
    return (
        f"INFORMATION: {kind} event at {d}. For awareness and monitoring. "
        "Continue normal operations with heightened alertness."
    )


def build_actions(event_kind: EventKind, severity: Severity) -> list[str]:
    kind = EventKind(event_kind)
    severity = Severity(severity)
    actions: list[str] = []

    if severity >= Severity.HIGH:
        actions += [
            "Alert all crew members",
            "Contact shore operations immediately",
            "Monitor emergency channels (VHF 16, DSC)",
        ]
    if kind == EventKind.TSUNAMI:
        actions += [
            "Move to deeper water (>500m depth) if possible",
            "Avoid coastal areas and harbors",
            "Prepare for possible strong currents",
        ]
    else:
        actions += [
            "Check for structural damage",
            "Monitor for aftershocks",
            "Be alert for tsunami warnings",
        ]
    return actions


def build_alert_message(
    *,
    vessel_name: str,
    vessel_mmsi: Optional[str],
    event: Any,
    distance_km: float,
    severity: Severity,
    now: datetime,
) -> str:
    """Message d'alerte de proximité (évènement = objet avec kind, location_label, magnitude...)."""
    severity = Severity(severity)
    kind = EventKind(event.kind)
    lines = [
        f"{SEVERITY_EMOJI.get(severity, '⚠️')} MARITIME ALERT - {severity.value.upper()}",
        "",
        f"Vessel: {vessel_name}" + (f" ({vessel_mmsi})" if vessel_mmsi else ""),
        f"Event: {kind.value.upper()}",
        f"Distance: {distance_km:.0f} km",
        f"Location: {event.location_label or 'Unknown'}",
        "",
    ]
    if kind == EventKind.EARTHQUAKE and event.magnitude is not None:
        lines.append(f"Magnitude: {event.magnitude:.1f}")
        if getattr(event, "depth_km", None):
            lines.append(f"Depth: {event.depth_km:.0f} km")
    if kind == EventKind.TSUNAMI:
        if event.severity_level:
            lines.append(f"Severity Level: {event.severity_level}")
        if event.wave_height_meters:
            lines.append(f"Wave Height: {event.wave_height_meters:.1f}m")
    lines += [
        "",
        f"Time: {now.isoformat()}",
        "",
        "⚠️ TAKE APPROPRIATE ACTION BASED ON YOUR EMERGENCY PROCEDURES.",
    ]
    return "\n".join(lines)


def build_step_message(alert: Any, *, vessel_name: str, step_number: int, timeout_minutes: int) -> str:
    """Message d'une étape d'escalade."""
    lines = [
        f"🚨 {str(alert.severity).upper()} ALERT - {alert.event_kind}",
        "",
        f"Vessel: {vessel_name}",
    ]
    if alert.distance_km is not None:
        lines.append(f"Distance: {round(alert.distance_km)} km")
    if alert.wave_height_meters:
        lines.append(f"Wave Height: {alert.wave_height_meters}m")
    if alert.tsunami_eta_minutes is not None:
        lines.append(f"ETA: {alert.tsunami_eta_minutes} minutes")
    lines += ["", alert.recommendation or alert.message or "", "", f"⚠️ ESCALATION STEP {step_number}"]
    if timeout_minutes > 0:
        lines.append(f"⏱️ Please acknowledge within {timeout_minutes} minutes")
    return "\n".join(lines)


def with_ack_link(body: str, base_url: str, alert_id: Any) -> str:
    return f"{body}\n\nAcknowledge: {ack_url(base_url, alert_id)}"


def ack_url(base_url: str, alert_id: Any) -> str:
    return f"{base_url.rstrip('/')}/alerts/{alert_id}/acknowledge"
