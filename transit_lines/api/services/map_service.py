# transit_lines/api/services/map_service.py
"""Service layer for map-related calculations."""

import logging
from typing import Dict, Any, Iterable, Optional

logger = logging.getLogger(__name__)


class MapService:
    """Coordinate checks and map framing helpers."""

    # Average speeds in meters per minute
    SPEEDS = {
        "driving": 666,    # ~40 km/h
        "walking": 83,     # ~5 km/h
        "transit": 333,    # ~20 km/h
        "bicycling": 250   # ~15 km/h
    }

    @staticmethod
    def calculate_bounds(points: Iterable[Any]) -> Dict[str, float]:
        """Calculate the bounding box of a set of points.

        Args:
            points: Points exposing ``latitude``/``longitude``

        Returns:
            Dictionary with north, south, east, west bounds, or {} if empty
        """
        lats = []
        lngs = []
        for point in points:
            lats.append(point.latitude)
            lngs.append(point.longitude)

        if not lats:
            return {}

        return {
            'north': max(lats),
            'south': min(lats),
            'east': max(lngs),
            'west': min(lngs)
        }

    @staticmethod
    def center_of(points: Iterable[Any]) -> Optional[Dict[str, float]]:
        """Centre of the bounding box, used to frame the editor map."""
        bounds = MapService.calculate_bounds(points)
        if not bounds:
            return None
        return {
            "latitude": (bounds["north"] + bounds["south"]) / 2,
            "longitude": (bounds["east"] + bounds["west"]) / 2,
        }

    @staticmethod
    def estimate_travel_time(distance_meters: float, mode: str = "driving") -> int:
        """Estimate travel time based on distance and mode.

        Args:
            distance_meters: Distance in meters
            mode: Travel mode (driving, walking, transit, bicycling)

        Returns:
            Estimated time in seconds
        """
        speed = MapService.SPEEDS.get(mode, MapService.SPEEDS["driving"])
        minutes = max(1, int(distance_meters / speed))
        return minutes * 60


__all__ = ['MapService']
