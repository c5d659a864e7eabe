import pytest

from alert_engine.domain.errors import NotFoundError

pytestmark = pytest.mark.unit


def test_sweep_creates_alert_for_vessel_in_zone(engine, seed, providers):
    near = seed.vessel(name="MV Aurora", lat=35.5, lon=140.0)
    seed.vessel(name="MV Distant", lat=10.0, lon=-30.0)
    seed.contact(near.id)
    seed.event(lat=35.0, lon=140.0)

    report = engine.monitor.sweep()

    assert (report.events, report.vessels, report.pairs) == (1, 2, 2)
    assert report.in_zone == 1
    assert report.created == 1
    assert report.errors == 0
    alert = engine.lifecycle.get_alert(report.alert_ids[0])
    assert alert.vessel_id == near.id
    assert alert.severity == "critical"
    assert alert.distance_km == pytest.approx(55.6, abs=0.2)
    assert "MARITIME ALERT - CRITICAL" in alert.message
    assert providers.sent


def test_second_sweep_only_finds_duplicates(engine, seed, clock):
    seed.vessel()
    seed.event()

    first = engine.monitor.sweep()
    clock.advance(minutes=5)
    second = engine.monitor.sweep()

    assert first.created == 1
    assert (second.created, second.duplicates) == (0, 1)
    assert engine.monitor.ticks == 2


def test_stale_positions_and_inactive_events_are_ignored(engine, seed):
    seed.vessel(observed_minutes_ago=120)
    seed.vessel(lat=None, lon=None)
    seed.event(active=False)
    seed.event(minutes_ago=60 * 30)

    report = engine.monitor.sweep()
    assert (report.events, report.vessels, report.pairs) == (0, 0, 0)


def test_severity_follows_distance(engine, seed):
    seed.vessel(name="Close", lat=35.5, lon=140.0)
    seed.vessel(name="Mid", lat=37.0, lon=140.0)
    seed.event(lat=35.0, lon=140.0)

    report = engine.monitor.sweep()
    severities = sorted(engine.lifecycle.get_alert(a).severity for a in report.alert_ids)
    assert severities == ["critical", "high"]


def test_evaluate_event_and_vessel(engine, seed):
    v = seed.vessel()
    e = seed.event()

    assert engine.monitor.evaluate_event(e.id).created == 1
    assert engine.monitor.evaluate_vessel(v.id).duplicates == 1

    with pytest.raises(NotFoundError):
        engine.monitor.evaluate_event("00000000-0000-0000-0000-000000000000")


def test_pair_error_does_not_abort_sweep(engine, seed, monkeypatch):
    seed.vessel(name="A", lat=35.5, lon=140.0)
    seed.vessel(name="B", lat=35.6, lon=140.0)
    seed.event()

    real = engine.lifecycle.create_and_route
    calls = []

    def flaky(vessel_id, *args, **kwargs):
        calls.append(vessel_id)
        if len(calls) == 1:
            raise RuntimeError("db hiccup")
        return real(vessel_id, *args, **kwargs)

    monkeypatch.setattr(engine.lifecycle, "create_and_route", flaky)
    report = engine.monitor.sweep()

    assert report.errors == 1
    assert report.created == 1


def test_evaluate_event_ignores_events_older_than_sweep_window(engine, seed, providers):
    seed.vessel()
    old = seed.event(minutes_ago=60 * 30)

    report = engine.monitor.evaluate_event(old.id)
    assert (report.pairs, report.created) == (0, 0)
    assert providers.sent == []
