from datetime import timedelta

import pytest

from alert_engine.domain.errors import InvalidInputError

pytestmark = pytest.mark.unit


def test_event_upsert_by_external_id(engine, clock):
    occurred = clock() - timedelta(minutes=3)
    first, _ = engine.ingestion.upsert_hazard_event(
        kind="earthquake", latitude=35.0, longitude=140.0, occurred_at=occurred,
        source="usgs", external_id="us7000abcd", magnitude=6.1, evaluate=False,
    )
    second, _ = engine.ingestion.upsert_hazard_event(
        kind="EARTHQUAKE", latitude=35.1, longitude=140.0, occurred_at=occurred,
        source="usgs", external_id="us7000abcd", magnitude=6.4, evaluate=False,
    )
    assert second.id == first.id
    assert second.magnitude == 6.4
    assert second.latitude == 35.1


def test_event_ingestion_triggers_evaluation(engine, seed, clock):
    seed.vessel()
    event, report = engine.ingestion.upsert_hazard_event(
        kind="tsunami", latitude=35.0, longitude=140.0, occurred_at=clock(), wave_height_meters=2.5,
    )
    assert report.created == 1
    alert = engine.lifecycle.get_alert(report.alert_ids[0])
    assert alert.event_id == event.id
    assert alert.tsunami_eta_minutes == 4


def test_cancelled_event_is_not_evaluated(engine, seed, clock):
    seed.vessel()
    _, report = engine.ingestion.upsert_hazard_event(
        kind="earthquake", latitude=35.0, longitude=140.0, occurred_at=clock(), active=False,
    )
    assert report is None


def test_invalid_event(engine, clock):
    with pytest.raises(InvalidInputError):
        engine.ingestion.upsert_hazard_event(kind="meteor", latitude=0, longitude=0, occurred_at=clock())
    with pytest.raises(InvalidInputError):
        engine.ingestion.upsert_hazard_event(kind="tsunami", latitude=95, longitude=0, occurred_at=clock())


def test_only_newer_positions_apply(engine, clock):
    t = clock()
    vessel, applied, _ = engine.ingestion.apply_position_update(
        mmsi="211000001", name="MV Aurora", latitude=10.0, longitude=20.0, observed_at=t, evaluate=False
    )
    assert applied is True

    _, applied, _ = engine.ingestion.apply_position_update(
        mmsi="211000001", latitude=11.0, longitude=21.0, observed_at=t - timedelta(minutes=1), evaluate=False
    )
    assert applied is False

    vessel, applied, _ = engine.ingestion.apply_position_update(
        mmsi="211000001", latitude=12.0, longitude=22.0, observed_at=t + timedelta(minutes=1), evaluate=False
    )
    assert applied is True
    assert (vessel.latest_lat, vessel.latest_lon) == (12.0, 22.0)
    assert vessel.name == "MV Aurora"


def test_position_update_triggers_evaluation(engine, seed, clock):
    seed.event(lat=35.0, lon=140.0)
    _, applied, report = engine.ingestion.apply_position_update(
        mmsi="211000002", latitude=35.5, longitude=140.0, observed_at=clock()
    )
    assert applied is True
    assert report.created == 1


def test_position_update_requires_mmsi(engine, clock):
    with pytest.raises(InvalidInputError):
        engine.ingestion.apply_position_update(mmsi=" ", latitude=0, longitude=0, observed_at=clock())
