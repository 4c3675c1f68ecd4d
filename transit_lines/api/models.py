"""Shared data structures for route editing.

Points are immutable values: the edit session keeps its undo snapshot as a
plain list of the same objects, so "current" and "snapshot" can never alias
a mutable record. Every edit produces new Point instances.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from transit_lines.api.config import DEFAULT_ROUTE_COLOR
from transit_lines.api.errors import PointValidationError
from transit_lines.api.geo import normalize_path, to_lat_lng, to_legacy_coordinates

logger = logging.getLogger(__name__)

BUILTIN_ID_PREFIX = "builtin-"


def default_point_name(position: int) -> str:
    return f"Point {position + 1}"


@dataclass(frozen=True)
class Point:
    """A single stop along a route."""

    latitude: float
    longitude: float
    street: str = ""
    name: str = ""
    index: int = 0  # position in the owning route, display only

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "name": self.name,
            "street": self.street,
            "index": self.index,
        }

    def to_document(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "street": self.street,
            "name": self.name,
            "coordinates": [self.longitude, self.latitude],
        }


def reindex(points: Iterable[Point]) -> List[Point]:
    """Return the points with ``index`` equal to their position."""
    return [p if p.index == i else replace(p, index=i) for i, p in enumerate(points)]


def _parse_user_coordinate(value: Any, label: str, limit: float) -> float:
    if isinstance(value, bool) or value is None:
        raise PointValidationError(f"{label} must be a valid number, got {value!r}")
    if isinstance(value, str):
        value = value.strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise PointValidationError(f"{label} must be a valid number, got {value!r}")
    if not math.isfinite(number):
        raise PointValidationError(f"{label} must be a finite number, got {value!r}")
    if not -limit <= number <= limit:
        raise PointValidationError(f"{label} must be between -{limit:g} and {limit:g}, got {number}")
    return number


def parse_latitude(value: Any) -> float:
    return _parse_user_coordinate(value, "Latitude", 90.0)


def parse_longitude(value: Any) -> float:
    return _parse_user_coordinate(value, "Longitude", 180.0)


def point_from_candidate(candidate: Any, position: int) -> Point:
    """Build a Point from user input, validating coordinates strictly.

    Raises:
        PointValidationError: if latitude/longitude are missing, not numeric,
            not finite or out of range.
    """
    if isinstance(candidate, Point):
        candidate = candidate.to_dict()
    if not isinstance(candidate, Mapping):
        raise PointValidationError("Point must be an object with latitude and longitude")

    latitude = parse_latitude(candidate.get("latitude"))
    longitude = parse_longitude(candidate.get("longitude"))
    name = str(candidate.get("name") or "").strip() or default_point_name(position)
    street = str(candidate.get("street") or "").strip()
    return Point(latitude=latitude, longitude=longitude, street=street, name=name, index=position)


def points_from_document(data: Mapping) -> List[Point]:
    """Decode the points of a stored route document.

    Prefers ``points`` (which carry street/name metadata) and falls back to the
    legacy ``coordinates`` array. Unresolvable entries are dropped.
    """
    raw_points = data.get("points")
    if isinstance(raw_points, list) and raw_points:
        decoded = []
        for entry in raw_points:
            latlng = to_lat_lng(entry)
            if latlng is None:
                logger.warning("Dropping unresolvable point entry: %r", entry)
                continue
            meta = entry if isinstance(entry, Mapping) else {}
            decoded.append(
                Point(
                    latitude=latlng["latitude"],
                    longitude=latlng["longitude"],
                    street=str(meta.get("street") or ""),
                    name=str(meta.get("name") or "") or default_point_name(len(decoded)),
                    index=len(decoded),
                )
            )
        if decoded:
            return decoded

    return [
        Point(
            latitude=latlng["latitude"],
            longitude=latlng["longitude"],
            name=default_point_name(i),
            index=i,
        )
        for i, latlng in enumerate(normalize_path(data.get("coordinates")))
    ]


def _timestamp(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


@dataclass
class Route:
    """A named, coloured path made of ordered points."""

    name: str
    color: str = DEFAULT_ROUTE_COLOR
    points: List[Point] = field(default_factory=list)
    public: bool = True
    id: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Any = None
    updated_at: Any = None
    builtin: bool = False

    @property
    def coordinates(self) -> List[Dict[str, float]]:
        # Always derived from points so both encodings describe the same geometry.
        return to_legacy_coordinates(self.points)

    @property
    def total_points(self) -> int:
        return len(self.points)

    @property
    def is_persisted(self) -> bool:
        return self.id is not None and not self.builtin

    def to_document(self) -> dict:
        """Fields written to the ``routes`` collection on every save."""
        return {
            "name": self.name,
            "color": self.color,
            "coordinates": self.coordinates,
            "points": [p.to_document() for p in self.points],
            "totalPoints": self.total_points,
            "public": self.public,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "public": self.public,
            "builtin": self.builtin,
            "totalPoints": self.total_points,
            "coordinates": self.coordinates,
            "points": [p.to_dict() for p in self.points],
            "createdBy": self.created_by,
            "updatedBy": self.updated_by,
            "createdAt": _timestamp(self.created_at),
            "updatedAt": _timestamp(self.updated_at),
        }

    @classmethod
    def from_document(cls, doc_id: Optional[str], data: Mapping) -> "Route":
        """Decode a stored document; legacy documents may use ``title``."""
        return cls(
            id=doc_id,
            name=str(data.get("name") or data.get("title") or ""),
            color=str(data.get("color") or DEFAULT_ROUTE_COLOR),
            points=points_from_document(data),
            public=bool(data.get("public", False)),
            created_by=data.get("createdBy"),
            updated_by=data.get("updatedBy"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class OperationResult:
    """Explicit outcome of a remote operation."""

    success: bool
    error: Optional[str] = None
    kind: str = "ok"  # ok | validation | busy | forbidden | not_found | remote
    route_id: Optional[str] = None

    @classmethod
    def ok(cls, route_id: Optional[str] = None) -> "OperationResult":
        return cls(success=True, route_id=route_id)

    @classmethod
    def failure(cls, error: str, kind: str = "remote", route_id: Optional[str] = None) -> "OperationResult":
        return cls(success=False, error=error, kind=kind, route_id=route_id)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "error": self.error,
            "kind": self.kind,
            "route_id": self.route_id,
        }
