import uuid

import pytest
from sqlalchemy import func, select

from alert_engine.domain.errors import InvalidInputError, NotFoundError
from alert_engine.infrastructure.persistence.database.models import Alert, AlertClaim, DeliveryLog

pytestmark = pytest.mark.unit


def _route(engine, vessel, event, severity="critical", distance=55.6, **kw):
    return engine.lifecycle.create_and_route(
        vessel.id, event.id, event.kind, severity, distance, {"lat": vessel.latest_lat, "lon": vessel.latest_lon},
        "Earthquake near MV Aurora", **kw
    )


def _count(Session, model, *where):
    with Session() as s:
        return s.scalar(select(func.count()).select_from(model).where(*where))


def test_critical_alert_is_created_and_sent(engine, seed, providers, Session):
    v = seed.vessel()
    seed.contact(v.id, phone="+15550001", email="captain@example.test")
    e = seed.event()

    result = _route(engine, v, e)

    assert result.is_duplicate is False
    assert result.recipient_count == 1
    assert len(result.delivery_logs) == 2
    alert = result.alert
    assert alert.status == "sent"
    assert alert.severity == "critical"
    assert alert.recommendation.startswith("IMMEDIATE ACTION REQUIRED")
    assert "Alert all crew members" in alert.actions
    assert alert.tsunami_eta_minutes is None
    assert {r["channel"] for r in providers.sent} == {"sms", "email"}
    sms = next(r for r in providers.sent if r["channel"] == "sms")
    assert f"/alerts/{alert.id}/acknowledge" in sms["body"]
    email = next(r for r in providers.sent if r["channel"] == "email")
    assert email["subject"] == "[CRITICAL] Earthquake alert - MV Aurora"


def test_tsunami_alert_carries_eta_and_wave_height(engine, seed):
    v = seed.vessel()
    e = seed.event(kind="tsunami", wave_height_meters=4.0)

    alert = _route(engine, v, e, severity="high", distance=160.0).alert
    assert alert.tsunami_eta_minutes == 12
    assert alert.wave_height_meters == 4.0


def test_duplicate_within_window_creates_nothing(engine, seed, providers, clock, Session):
    v = seed.vessel()
    seed.contact(v.id)
    e = seed.event()

    first = _route(engine, v, e)
    sends = len(providers.sent)
    clock.advance(minutes=1)
    second = _route(engine, v, e)

    assert second.is_duplicate is True
    assert second.alert.id == first.alert.id
    assert second.delivery_logs == []
    assert len(providers.sent) == sends
    assert _count(Session, Alert) == 1
    assert _count(Session, DeliveryLog) == 2
    assert engine.suppressor.is_duplicate(v.id, e.id) is True


def test_acknowledged_alert_still_suppresses(engine, seed, clock):
    v = seed.vessel()
    e = seed.event()
    first = _route(engine, v, e)
    engine.lifecycle.acknowledge(first.alert.id, acknowledged_by="captain")

    clock.advance(hours=2)
    assert _route(engine, v, e).is_duplicate is True


def test_new_alert_after_expiry_takes_over_claim(engine, seed, clock, Session):
    v = seed.vessel()
    e = seed.event()
    first = _route(engine, v, e)

    clock.advance(hours=25)
    second = _route(engine, v, e)

    assert second.is_duplicate is False
    assert second.alert.id != first.alert.id
    assert _count(Session, Alert) == 2
    with Session() as s:
        claim = s.scalars(select(AlertClaim)).one()
        assert claim.alert_id == second.alert.id


def test_no_contacts_yields_warning(engine, seed, providers):
    v = seed.vessel()
    e = seed.event()

    result = _route(engine, v, e)

    assert result.warning == "no_contacts"
    assert result.alert.status == "pending"
    assert result.alert.warnings[0]["code"] == "no_contacts"
    assert providers.sent == []


def test_contact_without_usable_channel_yields_no_deliveries(engine, seed):
    v = seed.vessel()
    seed.contact(v.id, phone=None, email=None, whatsapp=None)
    e = seed.event()

    result = _route(engine, v, e)
    assert result.delivery_logs == []
    assert result.warning == "no_deliveries"


@pytest.mark.parametrize(
    "kwargs,field",
    [
        ({"severity": "catastrophic"}, "severity"),
        ({"distance": -3}, "distance_km"),
        ({"distance": float("nan")}, "distance_km"),
    ],
)
def test_invalid_input(engine, seed, kwargs, field):
    v = seed.vessel()
    e = seed.event()
    with pytest.raises(InvalidInputError) as exc:
        _route(engine, v, e, **kwargs)
    assert exc.value.field == field


def test_invalid_coordinates(engine, seed):
    v = seed.vessel()
    e = seed.event()
    with pytest.raises(InvalidInputError):
        engine.lifecycle.create_and_route(v.id, e.id, "earthquake", "high", 10.0, {"lat": 123, "lon": 0}, "x")


def test_unknown_vessel_or_event(engine, seed):
    e = seed.event()
    v = seed.vessel()
    with pytest.raises(NotFoundError):
        engine.lifecycle.create_and_route(uuid.uuid4(), e.id, "earthquake", "high", 10.0, (35.0, 140.0), "x")
    with pytest.raises(NotFoundError):
        engine.lifecycle.create_and_route(v.id, uuid.uuid4(), "earthquake", "high", 10.0, (35.0, 140.0), "x")


def test_acknowledge_is_idempotent(engine, seed, clock):
    v = seed.vessel()
    seed.contact(v.id)
    e = seed.event()
    alert = _route(engine, v, e).alert

    clock.advance(minutes=4)
    acked = engine.lifecycle.acknowledge(alert.id, acknowledged_by="captain")
    assert acked.status == "acknowledged"
    first_ack_at = acked.acknowledged_at

    clock.advance(minutes=1)
    again = engine.lifecycle.acknowledge(alert.id, acknowledged_by="someone else")
    assert again.acknowledged_at == first_ack_at
    assert again.acknowledged_by == "captain"

    status = engine.lifecycle.delivery_status(alert.id)
    assert status["acknowledged"] is True
    assert status["response_time_seconds"] == 240


def test_acknowledge_unknown_and_expired(engine, seed, clock):
    with pytest.raises(NotFoundError):
        engine.lifecycle.acknowledge(uuid.uuid4())

    v = seed.vessel()
    e = seed.event()
    alert = _route(engine, v, e).alert
    clock.advance(hours=24, seconds=1)
    with pytest.raises(InvalidInputError):
        engine.lifecycle.acknowledge(alert.id)


def test_lazy_expiry_then_sweep(engine, seed, clock, Session):
    v = seed.vessel()
    seed.contact(v.id)
    e = seed.event()
    alert = _route(engine, v, e).alert

    clock.advance(hours=25)
    assert engine.lifecycle.get_alert(alert.id).status == "expired"
    with Session() as s:
        assert s.get(Alert, alert.id).status == "sent"

    assert engine.lifecycle.expire_stale() == 1
    assert engine.lifecycle.expire_stale() == 0
    with Session() as s:
        assert s.get(Alert, alert.id).status == "expired"


def test_get_alert_unknown(engine):
    with pytest.raises(NotFoundError):
        engine.lifecycle.get_alert(uuid.uuid4())


def test_alert_is_still_open_at_its_expiry_instant(engine, seed, clock):
    v = seed.vessel()
    seed.contact(v.id)
    alert = _route(engine, v, seed.event()).alert

    clock.advance(hours=24)
    assert engine.lifecycle.get_alert(alert.id).status == "sent"
    assert engine.lifecycle.expire_stale() == 0
    assert engine.lifecycle.acknowledge(alert.id, acknowledged_by="captain").status == "acknowledged"
