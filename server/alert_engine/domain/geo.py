# server/alert_engine/domain/geo.py

from __future__ import annotations
"""
Évaluation géospatiale (fonctions pures, sans effet de bord).

Fonctions principales :
    distance_km(a, b)                        -> distance orthodromique (haversine)
    classify_severity(kind, distance, radii) -> Severity | None

Les rayons de danger sont une table de configuration (km) par type
d'évènement puis par palier. Les paliers sont testés par rayon croissant :
le premier dont le rayon est >= distance gagne ; au-delà du plus grand
rayon, le navire n'est pas concerné (None).
"""

import math
from typing import Mapping, Optional

from alert_engine.domain.errors import InvalidInputError
from alert_engine.domain.types import EventKind, LatLon, Severity

EARTH_RADIUS_KM = 6371.0

DEFAULT_DANGER_ZONE_RADII: dict[str, dict[str, float]] = {
    EventKind.EARTHQUAKE.value: {"critical": 100.0, "high": 300.0, "moderate": 500.0, "low": 1000.0},
    EventKind.TSUNAMI.value: {"critical": 50.0, "high": 200.0, "moderate": 500.0, "low": 1000.0},
}

# Du plus grave au moins grave : les rayons doivent croître dans cet ordre
_TIER_ORDER = (Severity.CRITICAL, Severity.HIGH, Severity.MODERATE, Severity.LOW)


def validate_latlon(lat: float, lon: float) -> LatLon:
    """Construit un LatLon en rejetant les coordonnées hors bornes / NaN."""
    try:
        lat_f, lon_f = float(lat), float(lon)
    except (TypeError, ValueError):
        raise InvalidInputError(f"malformed coordinates: {lat!r}, {lon!r}", field="coordinates")
    if math.isnan(lat_f) or math.isnan(lon_f):
        raise InvalidInputError("coordinates must not be NaN", field="coordinates")
    if not -90.0 <= lat_f <= 90.0:
        raise InvalidInputError(f"latitude out of range: {lat_f}", field="latitude")
    if not -180.0 <= lon_f <= 180.0:
        raise InvalidInputError(f"longitude out of range: {lon_f}", field="longitude")
    return LatLon(lat_f, lon_f)


def distance_km(a: LatLon, b: LatLon) -> float:
    """Distance haversine (km) sur une Terre sphérique de rayon 6371 km."""
    lat1, lon1 = math.radians(a.lat), math.radians(a.lon)
    lat2, lon2 = math.radians(b.lat), math.radians(b.lon)
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Les arrondis flottants peuvent pousser h hors de [0, 1] aux antipodes
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def validate_radii(radii: Mapping[str, Mapping[str, float]]) -> None:
    """
    Vérifie la table des rayons : chaque type d'évènement est présent et définit
    les 4 paliers, avec critical < high < moderate < low (paliers contigus,
    sans recouvrement).
    """
    absent = [k.value for k in EventKind if k.value not in radii]
    if absent:
        raise ValueError(f"radii missing event kinds: {absent}")
    for kind, tiers in radii.items():
        try:
            EventKind(kind)
        except ValueError:
            raise ValueError(f"unknown event kind in radii: {kind!r}")
        missing = [t.value for t in _TIER_ORDER if t.value not in tiers]
        if missing:
            raise ValueError(f"radii for {kind!r} missing tiers: {missing}")
        values = [float(tiers[t.value]) for t in _TIER_ORDER]
        if values[0] <= 0:
            raise ValueError(f"radii for {kind!r} must be > 0")
        if any(b <= a for a, b in zip(values, values[1:])):
            raise ValueError(f"radii for {kind!r} must increase from critical to low: {values}")


def classify_severity(
    event_kind: EventKind | str,
    distance: float,
    radii: Optional[Mapping[str, Mapping[str, float]]] = None,
) -> Optional[Severity]:
    """
    Mappe (type d'évènement, distance) -> palier de sévérité, ou None si hors zone.

    Monotone : une distance plus grande ne donne jamais une sévérité plus haute.
    """
    kind = EventKind(event_kind)
    if distance is None or math.isnan(distance) or distance < 0:
        raise InvalidInputError(f"invalid distance: {distance!r}", field="distance_km")

    table = (radii or DEFAULT_DANGER_ZONE_RADII).get(kind.value)
    if not table:
        return None

    tiers = sorted(
        ((float(table[t.value]), t) for t in _TIER_ORDER if t.value in table),
        key=lambda x: x[0],
    )
    for radius, tier in tiers:
        if distance <= radius:
            return tier
    return None
