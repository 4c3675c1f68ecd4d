# transit_lines/api/directions.py
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict

import googlemaps
from googlemaps import convert
from googlemaps.exceptions import ApiError, Timeout, TransportError

from transit_lines.api.config import get_directions_config, get_google_maps_config
from transit_lines.api.geo import haversine_m, to_lat_lng
from transit_lines.api.services.map_service import MapService

logger = logging.getLogger(__name__)

# Travel profiles as stored by the mobile client -> Google travel modes
PROFILE_MODES = {
    "driving-car": "driving",
    "driving-hgv": "driving",
    "foot-walking": "walking",
    "foot-hiking": "walking",
    "cycling-regular": "bicycling",
    "cycling-road": "bicycling",
    "cycling-mountain": "bicycling",
    "cycling-electric": "bicycling",
    "driving": "driving",
    "walking": "walking",
    "bicycling": "bicycling",
    "transit": "transit",
}

_gmaps: googlemaps.Client | None = None


def _get_client() -> googlemaps.Client | None:
    """Return a cached googlemaps.Client instance."""
    global _gmaps
    if _gmaps is None:
        try:
            cfg = get_google_maps_config()
            api_key = cfg.get("api_key", "")
            if not api_key:
                logger.error("No Google Maps API key found in config")
                return None
            timeout = get_directions_config()["timeout_seconds"]
            logger.info(f"Initializing Google Maps client with key: {api_key[:10]}...")
            _gmaps = googlemaps.Client(key=api_key, timeout=timeout)
        except ValueError as e:
            logger.error(f"Failed to initialize Google Maps client: {e}")
            return None
    return _gmaps


def profile_to_mode(profile: str) -> str:
    mode = PROFILE_MODES.get((profile or "").strip().lower())
    if mode is None:
        logger.warning(f"Unknown travel profile '{profile}', using driving")
        return "driving"
    return mode


class NoRouteFound(Exception):
    """The Directions API answered without a usable route."""


@lru_cache(maxsize=256)
def _fetch_directions(client: googlemaps.Client, start: tuple[float, float], end: tuple[float, float],
                      mode: str) -> Dict[str, Any]:
    """Query the Directions API.

    Only found routes are cached; every failure raises so the next lookup
    asks again.
    """
    results = client.directions(start, end, mode=mode)
    if not results:
        raise NoRouteFound(f"No {mode} route between {start} and {end}")

    route = results[0]
    polyline = route.get("overview_polyline", {}).get("points")
    if not polyline:
        raise NoRouteFound("Directions result has no overview polyline")

    coordinates = [
        {"latitude": float(p["lat"]), "longitude": float(p["lng"])}
        for p in convert.decode_polyline(polyline)
    ]
    legs = route.get("legs", [])
    distance = sum(leg.get("distance", {}).get("value", 0) for leg in legs)
    duration = sum(leg.get("duration", {}).get("value", 0) for leg in legs)
    return {
        "coordinates": coordinates,
        "distance_m": float(distance),
        "duration_s": float(duration),
    }


def straight_line(start: Dict[str, float], end: Dict[str, float], mode: str = "driving") -> Dict[str, Any]:
    """Fallback geometry: the direct segment between both points."""
    distance = haversine_m(start["latitude"], start["longitude"], end["latitude"], end["longitude"])
    return {
        "coordinates": [dict(start), dict(end)],
        "distance_m": distance,
        "duration_s": float(MapService.estimate_travel_time(distance, mode)),
        "source": "straight_line",
    }


def get_route_between(start: Any, end: Any, profile: str | None = None) -> Dict[str, Any]:
    """Compute a path between two points.

    Never raises for remote failures: any error degrades to a straight line so
    the editor is never blocked.

    Raises:
        ValueError: if either endpoint cannot be read as a coordinate.
    """
    origin = to_lat_lng(start)
    destination = to_lat_lng(end)
    if origin is None or destination is None:
        raise ValueError("start and end must be valid coordinates")

    profile = profile or get_directions_config()["default_profile"]
    mode = profile_to_mode(profile)

    result = None
    client = _get_client()
    if client is not None:
        try:
            result = _fetch_directions(
                client,
                (origin["latitude"], origin["longitude"]),
                (destination["latitude"], destination["longitude"]),
                mode,
            )
        except NoRouteFound as e:
            logger.info(f"Directions lookup found nothing ({profile}): {e}")
        except (ApiError, Timeout, TransportError) as e:
            logger.warning(f"Directions lookup failed ({profile}): {e}")

    if result is None:
        logger.info("Using straight-line fallback between %s and %s", origin, destination)
        fallback = straight_line(origin, destination, mode)
        fallback["profile"] = profile
        return fallback

    route = dict(result)
    route["coordinates"] = [dict(c) for c in result["coordinates"]]
    route["source"] = "directions"
    route["profile"] = profile
    return route


__all__ = [
    "get_route_between",
    "straight_line",
    "profile_to_mode",
]
