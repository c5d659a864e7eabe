import math

import pytest
from hypothesis import given, strategies as st

from alert_engine.domain.errors import InvalidInputError
from alert_engine.domain.geo import (
    DEFAULT_DANGER_ZONE_RADII,
    classify_severity,
    distance_km,
    validate_latlon,
    validate_radii,
)
from alert_engine.domain.types import LatLon, Severity

pytestmark = pytest.mark.unit

lats = st.floats(min_value=-90, max_value=90, allow_nan=False)
lons = st.floats(min_value=-180, max_value=180, allow_nan=False)
points = st.builds(LatLon, lats, lons)
distances = st.floats(min_value=0, max_value=25000, allow_nan=False)


def test_distance_half_degree_of_latitude():
    d = distance_km(LatLon(35.0, 140.0), LatLon(35.5, 140.0))
    assert d == pytest.approx(55.6, abs=0.2)


def test_distance_antipodes_is_half_circumference():
    d = distance_km(LatLon(0.0, 0.0), LatLon(0.0, 180.0))
    assert d == pytest.approx(math.pi * 6371.0, rel=1e-9)


@given(points)
def test_distance_to_self_is_zero(p):
    assert distance_km(p, p) == pytest.approx(0.0, abs=1e-6)


@given(points, points)
def test_distance_is_symmetric_and_bounded(a, b):
    d = distance_km(a, b)
    assert d == pytest.approx(distance_km(b, a), abs=1e-6)
    assert 0.0 <= d <= math.pi * 6371.0 + 1e-6


@given(st.sampled_from(["earthquake", "tsunami"]), distances, distances)
def test_classification_is_monotonic(kind, d1, d2):
    near, far = sorted((d1, d2))
    s_near, s_far = classify_severity(kind, near), classify_severity(kind, far)
    if s_far is not None:
        assert s_near is not None
        assert s_near >= s_far


@pytest.mark.parametrize(
    "kind,distance,expected",
    [
        ("earthquake", 55.0, Severity.CRITICAL),
        ("earthquake", 100.0, Severity.CRITICAL),
        ("earthquake", 100.1, Severity.HIGH),
        ("earthquake", 450.0, Severity.MODERATE),
        ("earthquake", 999.0, Severity.LOW),
        ("earthquake", 1000.5, None),
        ("tsunami", 50.0, Severity.CRITICAL),
        ("tsunami", 120.0, Severity.HIGH),
        ("tsunami", 0.0, Severity.CRITICAL),
    ],
)
def test_classification_boundaries(kind, distance, expected):
    assert classify_severity(kind, distance) == expected


def test_classification_rejects_negative_and_nan():
    with pytest.raises(InvalidInputError):
        classify_severity("earthquake", -1.0)
    with pytest.raises(InvalidInputError):
        classify_severity("earthquake", float("nan"))


def test_classification_uses_custom_radii():
    radii = {"earthquake": {"critical": 10, "high": 20, "moderate": 30, "low": 40}}
    assert classify_severity("earthquake", 15, radii) == Severity.HIGH
    assert classify_severity("earthquake", 41, radii) is None


@pytest.mark.parametrize(
    "lat,lon",
    [(91, 0), (-90.5, 0), (0, 181), (0, -180.01), (float("nan"), 0), ("abc", 1), (None, 2)],
)
def test_validate_latlon_rejects(lat, lon):
    with pytest.raises(InvalidInputError):
        validate_latlon(lat, lon)


def test_validate_latlon_accepts_bounds():
    assert validate_latlon(-90, 180) == LatLon(-90.0, 180.0)


def test_validate_radii_accepts_defaults_and_rejects_overlap():
    validate_radii(DEFAULT_DANGER_ZONE_RADII)
    tsunami = {"tsunami": DEFAULT_DANGER_ZONE_RADII["tsunami"]}
    with pytest.raises(ValueError, match="increase"):
        validate_radii({**tsunami, "earthquake": {"critical": 300, "high": 100, "moderate": 500, "low": 1000}})
    with pytest.raises(ValueError, match="missing tiers"):
        validate_radii({**tsunami, "earthquake": {"critical": 100, "high": 300}})
    with pytest.raises(ValueError, match="unknown event kind"):
        validate_radii({**DEFAULT_DANGER_ZONE_RADII, "volcano": {"critical": 1, "high": 2, "moderate": 3, "low": 4}})


def test_validate_radii_requires_every_event_kind():
    with pytest.raises(ValueError, match="tsunami"):
        validate_radii({"earthquake": DEFAULT_DANGER_ZONE_RADII["earthquake"]})
