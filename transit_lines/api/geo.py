# transit_lines/api/geo.py
"""Coordinate normalisation helpers.

Route documents written by older clients store coordinates in several shapes:
``[lng, lat]`` arrays, ``{lat, lng}`` objects, ``{latitude, longitude}``
objects and Firestore ``GeoPoint`` values. Everything read from the store goes
through :func:`to_lat_lng` / :func:`normalize_path` once, so the rest of the
code only ever sees the canonical ``{"latitude": float, "longitude": float}``
shape.

The decoding is intentionally lenient: entries that cannot be resolved are
dropped (and logged) instead of raising, because historical documents cannot
be repaired from this client. User input is validated strictly elsewhere.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000.0

LatLng = Dict[str, float]


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _canonical(lat: Any, lng: Any) -> Optional[LatLng]:
    latitude = _as_float(lat)
    longitude = _as_float(lng)
    if latitude is None or longitude is None:
        return None
    if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
        return None
    return {"latitude": latitude, "longitude": longitude}


def _first_present(mapping: Mapping, *keys: str) -> Any:
    for key in keys:
        if mapping.get(key) is not None:
            return mapping[key]
    return None


def _is_pair(value: Any) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) >= 2
        and not isinstance(value[0], (list, tuple, Mapping))
    )


def to_lat_lng(value: Any) -> Optional[LatLng]:
    """Resolve one coordinate in any supported encoding, or return None."""
    if value is None:
        return None

    # [lng, lat] – GeoJSON order
    if isinstance(value, (list, tuple)):
        if not _is_pair(value):
            return None
        return _canonical(value[1], value[0])

    if isinstance(value, Mapping):
        lat = _first_present(value, "latitude", "lat", "_lat")
        lng = _first_present(value, "longitude", "lng", "lon", "_long")
        if lat is not None and lng is not None:
            return _canonical(lat, lng)
        # point documents carry a redundant [lng, lat] pair
        nested = value.get("coordinates")
        if _is_pair(nested):
            return _canonical(nested[1], nested[0])
        return None

    # GeoPoint-like objects
    lat = getattr(value, "latitude", None)
    lng = getattr(value, "longitude", None)
    if lat is None or lng is None:
        return None
    return _canonical(lat, lng)


def normalize_path(values: Any) -> List[LatLng]:
    """Normalise a sequence of coordinates, dropping the ones that don't resolve."""
    if not isinstance(values, (list, tuple)):
        if values is not None:
            logger.warning("Expected a coordinate sequence, got %s", type(values).__name__)
        return []

    out = []
    for position, value in enumerate(values):
        latlng = to_lat_lng(value)
        if latlng is None:
            logger.warning("Dropping unresolvable coordinate at position %d: %r", position, value)
            continue
        out.append(latlng)
    return out


def _lat_lng_of(point: Any) -> tuple[float, float]:
    if isinstance(point, Mapping):
        return float(point["latitude"]), float(point["longitude"])
    return float(point.latitude), float(point.longitude)


def to_legacy_coordinates(points: Iterable[Any]) -> List[Dict[str, float]]:
    """Canonical points -> ``[{lat, lng}]`` (Firestore forbids nested arrays)."""
    out = []
    for point in points:
        lat, lng = _lat_lng_of(point)
        out.append({"lat": lat, "lng": lng})
    return out


def to_lng_lat_pairs(points: Iterable[Any]) -> List[List[float]]:
    """Canonical points -> ``[[lng, lat]]`` as expected by map renderers."""
    out = []
    for point in points:
        lat, lng = _lat_lng_of(point)
        out.append([lng, lat])
    return out


def haversine_m(a_lat: float, a_lng: float, b_lat: float, b_lng: float) -> float:
    """Great-circle distance between two points in metres."""
    phi1 = math.radians(a_lat)
    phi2 = math.radians(b_lat)
    dphi = math.radians(b_lat - a_lat)
    dlmb = math.radians(b_lng - a_lng)

    s = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(s))


def path_length_m(points: Iterable[Any]) -> float:
    """Total length of a polyline of canonical points in metres."""
    coords = [_lat_lng_of(p) for p in points]
    total = 0.0
    for i in range(1, len(coords)):
        total += haversine_m(coords[i - 1][0], coords[i - 1][1], coords[i][0], coords[i][1])
    return total


__all__ = [
    "to_lat_lng",
    "normalize_path",
    "to_legacy_coordinates",
    "to_lng_lat_pairs",
    "haversine_m",
    "path_length_m",
]
