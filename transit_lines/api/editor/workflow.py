# transit_lines/api/editor/workflow.py
"""Edit session for one route: gestures in, store mutations, renders out.

The workflow owns the point collection and the map bridge. Renderer events
arrive through :meth:`EditorWorkflow.handle_map_message`; host UI commands are
plain method calls. Every mutation re-renders the map and marks the session as
having unsaved changes; :meth:`save` and :meth:`revert` are the only ways out.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from transit_lines.api.config import get_editor_config
from transit_lines.api.editor import protocol
from transit_lines.api.editor.bridge import MapBridge
from transit_lines.api.editor.protocol import MessageDispatcher, MessageType
from transit_lines.api.errors import ValidationError
from transit_lines.api.geo import path_length_m
from transit_lines.api.models import OperationResult, Point, Route, default_point_name
from transit_lines.api.services.map_service import MapService
from transit_lines.api.services.point_store import PointCollection
from transit_lines.api.services.route_repository import HEX_COLOR

logger = logging.getLogger(__name__)

Notify = Callable[[str, Dict[str, Any]], None]


class EditorWorkflow:
    """State and behaviour of an in-progress route edit."""

    def __init__(
        self,
        repository,
        send_map: Callable[[str], Any],
        notify: Optional[Notify] = None,
        route: Optional[Route] = None,
        owner: Optional[str] = None,
    ):
        self.repository = repository
        self.owner = owner
        self.notify = notify

        self.route_id: Optional[str] = None
        self.name = ""
        self.color = get_editor_config()["default_route_color"]
        self.public = True
        self.builtin = False
        self._saved_details = self._details()

        self.add_point_mode = False
        self.multi_select = False

        # Socket events for one session are applied one at a time
        self.lock = threading.RLock()
        self._save_guard = threading.Lock()

        self.created_at = datetime.now()
        self.last_activity = datetime.now()

        self.bridge = MapBridge(send_map)
        self.points = PointCollection(on_change=self._on_store_change)

        self.dispatcher = MessageDispatcher()
        self.dispatcher.register(MessageType.MAP_READY, self._on_map_ready)
        self.dispatcher.register(MessageType.POINT_CLICKED, self._on_point_clicked)
        self.dispatcher.register(MessageType.POINT_MOVED, self._on_point_moved)
        self.dispatcher.register(MessageType.MAP_CLICKED, self._on_map_clicked)

        if route is not None:
            self.load_route(route)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def attach_transport(self, send_map: Callable[[str], Any], notify: Optional[Notify] = None) -> None:
        """Bind the session to a new screen; its renderer starts not ready."""
        with self.lock:
            self.bridge = MapBridge(send_map)
            self.notify = notify
            self.touch()
            self.render()

    def handle_map_message(self, raw: Any) -> bool:
        """Entry point for every renderer message."""
        with self.lock:
            self.touch()
            return self.dispatcher.dispatch(raw)

    def touch(self) -> None:
        self.last_activity = datetime.now()

    # ------------------------------------------------------------------
    # Renderer events
    # ------------------------------------------------------------------

    def _on_map_ready(self, message: Dict[str, Any]) -> None:
        if not self.bridge.mark_ready():
            return
        # The pending slot holds only the latest message; replay the full view
        self.render()
        if self.points.selected_indices:
            self.bridge.post(protocol.set_selected_points(self.points.selected_indices))
        if self.add_point_mode:
            self.bridge.post(protocol.set_add_point_mode(True))
        center = MapService.center_of(self.points.points[:1])
        if center:
            self.bridge.post(protocol.set_center(center["latitude"], center["longitude"]))

    def _on_point_clicked(self, message: Dict[str, Any]) -> None:
        index = message["pointIndex"]
        if index >= len(self.points):
            logger.info(f"Ignoring click on missing point {index}")
            return
        if self.multi_select:
            self.points.toggle_selection(index)
            return
        self._notify("point_dialog", {
            "mode": "edit",
            "index": index,
            "point": self.points.get(index).to_dict(),
        })

    def _on_point_moved(self, message: Dict[str, Any]) -> None:
        self.points.move_point(message["pointIndex"], message["latitude"], message["longitude"])

    def _on_map_clicked(self, message: Dict[str, Any]) -> None:
        if not self.add_point_mode:
            logger.debug("Map click ignored outside add-point mode")
            return
        self._notify("point_dialog", {
            "mode": "add",
            "index": len(self.points),
            "point": {
                "latitude": message["latitude"],
                "longitude": message["longitude"],
                "name": default_point_name(len(self.points)),
                "street": "",
            },
        })

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def load_route(self, route: Route) -> None:
        with self.lock:
            self.route_id = route.id
            self.name = route.name
            self.color = route.color
            self.public = route.public
            self.builtin = route.builtin
            self._saved_details = self._details()
            self.points.load_points(route.points)

    def load_points(self, points: Iterable[Any]) -> None:
        with self.lock:
            self.points.load_points(points)

    def add_point(self, candidate: Any) -> Point:
        with self.lock:
            return self.points.add_point(candidate)

    def update_point(self, index: int, patch: Mapping) -> Point:
        with self.lock:
            return self.points.update_point(index, patch)

    def delete_point(self, index: int) -> Point:
        with self.lock:
            self.points.get(index)  # raises PointIndexError before anything changes
            self._drop_selection()
            return self.points.delete_point(index)

    def delete_selected(self) -> int:
        with self.lock:
            selected = self.points.selected_indices
            self._drop_selection()
            return self.points.delete_points(selected)

    def set_multi_select(self, enabled: bool) -> None:
        with self.lock:
            self.multi_select = bool(enabled)
            if not self.multi_select:
                self.points.clear_selection()

    def set_add_point_mode(self, enabled: bool) -> None:
        with self.lock:
            self.add_point_mode = bool(enabled)
            self.bridge.post(protocol.set_add_point_mode(self.add_point_mode))

    def update_details(self, name: Optional[str] = None, color: Optional[str] = None,
                       public: Optional[bool] = None) -> None:
        """Change route metadata; the geometry is untouched."""
        with self.lock:
            if name is not None:
                if not str(name).strip():
                    raise ValidationError("Route name is required")
                self.name = str(name).strip()
            if color is not None:
                if not HEX_COLOR.match(str(color)):
                    raise ValidationError(f"Color must be a hex value like #FF5722, got {color!r}")
                self.color = str(color).upper()
            if public is not None:
                self.public = bool(public)
            self.points.has_unsaved_changes = True
            self.render()

    def clear_map(self) -> None:
        with self.lock:
            self.points.delete_points(range(len(self.points)))

    def revert(self) -> None:
        """Discard edits since the last load or save."""
        with self.lock:
            self.name, self.color, self.public = self._saved_details
            self.points.revert()
            logger.info(f"Reverted edits on route {self.route_id or '<new>'}")

    def save(self, actor: Optional[str]) -> OperationResult:
        """Persist the session's route.

        A save that arrives while another is running for this session is
        rejected as busy rather than queued.
        """
        if not self._save_guard.acquire(blocking=False):
            return OperationResult.failure(
                "A save for this route is already in progress", kind="busy", route_id=self.route_id
            )
        try:
            with self.lock:
                self.touch()
                result = self.repository.save(self.to_route(), actor)
                if result.success:
                    self.route_id = result.route_id
                    self._saved_details = self._details()
                    self.points.commit()
                return result
        finally:
            self._save_guard.release()

    @property
    def saving(self) -> bool:
        return self._save_guard.locked()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def to_route(self) -> Route:
        return Route(
            id=self.route_id,
            name=self.name,
            color=self.color,
            points=self.points.points,
            public=self.public,
            builtin=self.builtin,
        )

    def state(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "routeId": self.route_id,
                "name": self.name,
                "color": self.color,
                "public": self.public,
                "builtin": self.builtin,
                "points": [p.to_dict() for p in self.points.points],
                "lengthMeters": round(path_length_m(self.points.points), 1),
                "selected": self.points.selected_indices,
                "hasUnsavedChanges": self.points.has_unsaved_changes,
                "addPointMode": self.add_point_mode,
                "multiSelect": self.multi_select,
                "mapReady": self.bridge.is_ready,
                "saving": self.saving,
            }

    def render(self) -> None:
        points = self.points.points
        if len(points) >= 2:
            self.bridge.post(protocol.show_route(points, self.color, self.name))
        else:
            self.bridge.post(protocol.clear_points())
        self.bridge.post(protocol.show_editable_points(points))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _drop_selection(self) -> None:
        # Posted before the re-render so a queued render stays the pending message
        if self.points.selected_indices:
            self.points.clear_selection()

    def _details(self):
        return (self.name, self.color, self.public)

    def _on_store_change(self, kind: str) -> None:
        if kind == "selection":
            self.bridge.post(protocol.set_selected_points(self.points.selected_indices))
        else:
            self.render()

    def _notify(self, event: str, data: Dict[str, Any]) -> None:
        if self.notify is None:
            return
        try:
            self.notify(event, data)
        except Exception as e:
            logger.error(f"Failed to notify {event}: {e}")