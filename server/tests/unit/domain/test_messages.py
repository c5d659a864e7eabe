from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from alert_engine.domain.lifecycle import effective_status
from alert_engine.domain.messages import (
    ack_url,
    build_actions,
    build_alert_message,
    build_recommendation,
    build_step_message,
    tsunami_eta_minutes,
    with_ack_link,
)
from alert_engine.domain.types import AlertStatus, EventKind, Severity

pytestmark = pytest.mark.unit

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def test_tsunami_eta_uses_800_kmh():
    assert tsunami_eta_minutes(400) == 30
    assert tsunami_eta_minutes(0) == 0


@pytest.mark.parametrize(
    "severity,prefix",
    [
        (Severity.CRITICAL, "IMMEDIATE ACTION REQUIRED"),
        (Severity.HIGH, "HIGH PRIORITY"),
        (Severity.MODERATE, "ADVISORY"),
        (Severity.LOW, "INFORMATION"),
    ],
)
def test_recommendation_by_severity(severity, prefix):
    text = build_recommendation(EventKind.EARTHQUAKE, severity, 55.4)
    assert text.startswith(prefix)
    assert "EARTHQUAKE" in text and "55km" in text


def test_actions_depend_on_kind_and_severity():
    critical_tsunami = build_actions(EventKind.TSUNAMI, Severity.CRITICAL)
    assert "Alert all crew members" in critical_tsunami
    assert any("deeper water" in a for a in critical_tsunami)

    low_quake = build_actions(EventKind.EARTHQUAKE, Severity.LOW)
    assert "Alert all crew members" not in low_quake
    assert "Monitor for aftershocks" in low_quake


def test_alert_message_mentions_vessel_event_and_magnitude():
    event = SimpleNamespace(
        kind="earthquake", location_label="Off Honshu", magnitude=7.24, depth_km=12.0,
        severity_level=None, wave_height_meters=None,
    )
    msg = build_alert_message(
        vessel_name="MV Aurora", vessel_mmsi="211000001", event=event,
        distance_km=55.4, severity=Severity.CRITICAL, now=NOW,
    )
    assert "MARITIME ALERT - CRITICAL" in msg
    assert "MV Aurora (211000001)" in msg
    assert "Distance: 55 km" in msg
    assert "Magnitude: 7.2" in msg


def test_step_message_carries_step_and_timeout():
    alert = SimpleNamespace(
        severity="critical", event_kind="tsunami", distance_km=42.2, wave_height_meters=3.5,
        tsunami_eta_minutes=3, recommendation="Move to deeper water", message="",
    )
    msg = build_step_message(alert, vessel_name="MV Aurora", step_number=2, timeout_minutes=15)
    assert "ESCALATION STEP 2" in msg
    assert "acknowledge within 15 minutes" in msg
    assert "ETA: 3 minutes" in msg

    no_timeout = build_step_message(alert, vessel_name="MV Aurora", step_number=1, timeout_minutes=0)
    assert "acknowledge within" not in no_timeout


def test_ack_link():
    assert ack_url("https://ops.example.test/", "abc") == "https://ops.example.test/alerts/abc/acknowledge"
    assert with_ack_link("Body", "https://ops.example.test", "abc").endswith("/alerts/abc/acknowledge")


def test_effective_status_applies_lazy_expiry():
    expires = NOW + timedelta(hours=1)
    assert effective_status("sent", expires, NOW) == AlertStatus.SENT
    assert effective_status("sent", expires, NOW + timedelta(hours=2)) == AlertStatus.EXPIRED
    assert effective_status("pending", expires, expires) == AlertStatus.PENDING
    assert effective_status("pending", expires, expires + timedelta(microseconds=1)) == AlertStatus.EXPIRED
    assert effective_status("acknowledged", expires, NOW + timedelta(days=3)) == AlertStatus.ACKNOWLEDGED
