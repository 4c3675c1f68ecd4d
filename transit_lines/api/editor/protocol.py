# transit_lines/api/editor/protocol.py
"""Map Bridge message envelope.

Every message is a JSON object ``{"type": ..., **payload}``. Renderer-bound
messages are built with the helpers below; host-bound messages are parsed in
exactly one place, :func:`decode`, and routed by :class:`MessageDispatcher`.
"""

import json
import logging
import math
from typing import Any, Callable, Dict, Iterable, Optional

from transit_lines.api.geo import to_lng_lat_pairs

logger = logging.getLogger(__name__)


class MessageType:
    # renderer-bound
    SHOW_ROUTE = "showRoute"
    SHOW_EDITABLE_POINTS = "showEditablePoints"
    SET_SELECTED_POINTS = "setSelectedPoints"
    CLEAR_POINTS = "clearPoints"
    SET_ADD_POINT_MODE = "setAddPointMode"
    SET_CENTER = "setCenter"

    # host-bound
    MAP_READY = "mapReady"
    POINT_CLICKED = "pointClicked"
    POINT_MOVED = "pointMoved"
    MAP_CLICKED = "mapClicked"


HOST_BOUND = {
    MessageType.MAP_READY,
    MessageType.POINT_CLICKED,
    MessageType.POINT_MOVED,
    MessageType.MAP_CLICKED,
}


def encode(message: Dict[str, Any]) -> str:
    return json.dumps(message, ensure_ascii=False)


# ----------------------------------------------------------------------
# Renderer-bound builders
# ----------------------------------------------------------------------

def show_route(points, color: str, name: str) -> Dict[str, Any]:
    return {
        "type": MessageType.SHOW_ROUTE,
        "route": {
            "coordinates": to_lng_lat_pairs(points),
            "color": color,
            "name": name,
        },
    }


def show_editable_points(points) -> Dict[str, Any]:
    return {
        "type": MessageType.SHOW_EDITABLE_POINTS,
        "points": [p.to_dict() for p in points],
    }


def set_selected_points(selected: Iterable[int]) -> Dict[str, Any]:
    return {"type": MessageType.SET_SELECTED_POINTS, "selected": list(selected)}


def clear_points() -> Dict[str, Any]:
    return {"type": MessageType.CLEAR_POINTS}


def set_add_point_mode(enabled: bool) -> Dict[str, Any]:
    return {"type": MessageType.SET_ADD_POINT_MODE, "enabled": bool(enabled)}


def set_center(latitude: float, longitude: float) -> Dict[str, Any]:
    return {"type": MessageType.SET_CENTER, "latitude": latitude, "longitude": longitude}


# ----------------------------------------------------------------------
# Host-bound decoding
# ----------------------------------------------------------------------

def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def _index(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    return None


def decode(raw: Any) -> Optional[Dict[str, Any]]:
    """Parse one renderer message.

    Returns a dict with a known ``type`` and typed payload fields, or None if
    the message must be ignored. Never raises.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Ignoring non UTF-8 bridge message")
            return None

    if isinstance(raw, str):
        text = raw.strip()
        if text == MessageType.MAP_READY:
            # older renderer pages post the bare string
            return {"type": MessageType.MAP_READY}
        try:
            raw = json.loads(text)
        except ValueError:
            logger.warning(f"Ignoring malformed bridge message: {text[:80]!r}")
            return None

    if not isinstance(raw, dict):
        logger.warning(f"Ignoring bridge message that is not an object: {type(raw).__name__}")
        return None

    kind = raw.get("type")
    if not isinstance(kind, str) or kind not in HOST_BOUND:
        logger.warning(f"Ignoring bridge message with unknown type: {kind!r}")
        return None

    if kind == MessageType.MAP_READY:
        return {"type": kind}

    if kind == MessageType.POINT_CLICKED:
        index = _index(raw.get("pointIndex"))
        if index is None:
            logger.warning(f"Ignoring {kind} without a valid pointIndex")
            return None
        return {"type": kind, "pointIndex": index}

    latitude = _number(raw.get("latitude"))
    longitude = _number(raw.get("longitude"))
    if latitude is None or longitude is None or not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        logger.warning(f"Ignoring {kind} with invalid coordinates")
        return None

    if kind == MessageType.MAP_CLICKED:
        return {"type": kind, "latitude": latitude, "longitude": longitude}

    index = _index(raw.get("pointIndex"))
    if index is None:
        logger.warning(f"Ignoring {kind} without a valid pointIndex")
        return None
    return {"type": kind, "pointIndex": index, "latitude": latitude, "longitude": longitude}


class MessageDispatcher:
    """Route decoded host-bound messages to handlers by type."""

    def __init__(self):
        self._handlers: Dict[str, Callable[[Dict[str, Any]], None]] = {}

    def register(self, message_type: str, handler: Callable[[Dict[str, Any]], None]) -> None:
        if message_type not in HOST_BOUND:
            raise ValueError(f"Not a renderer message type: {message_type}")
        self._handlers[message_type] = handler

    def dispatch(self, raw: Any) -> bool:
        """Decode and handle one message; returns True if a handler ran."""
        message = decode(raw)
        if message is None:
            return False

        handler = self._handlers.get(message["type"])
        if handler is None:
            logger.debug(f"No handler for bridge message {message['type']}")
            return False

        try:
            handler(message)
        except Exception as e:
            logger.error(f"Bridge handler for {message['type']} failed: {e}")
            return False
        return True
