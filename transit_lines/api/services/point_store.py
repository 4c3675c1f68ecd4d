# transit_lines/api/services/point_store.py
"""In-memory point collection for a route edit session."""

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any, Callable, Iterable, List, Optional

from transit_lines.api.errors import PointIndexError, PointValidationError
from transit_lines.api.models import (
    Point,
    default_point_name,
    parse_latitude,
    parse_longitude,
    point_from_candidate,
    reindex,
)

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS = {"name", "street", "latitude", "longitude"}


class PointCollection:
    """Ordered points being edited plus the snapshot used for cancel.

    All mutations go through the methods below. After each one the optional
    ``on_change`` callback is invoked with ``"points"`` or ``"selection"`` so
    the owner can re-render the map.
    """

    def __init__(self, on_change: Optional[Callable[[str], None]] = None):
        self.on_change = on_change
        self._points: List[Point] = []
        self._snapshot: List[Point] = []
        self._selected: List[int] = []
        self.has_unsaved_changes = False

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def points(self) -> List[Point]:
        return list(self._points)

    @property
    def snapshot(self) -> List[Point]:
        return list(self._snapshot)

    @property
    def selected_indices(self) -> List[int]:
        return list(self._selected)

    def __len__(self) -> int:
        return len(self._points)

    def get(self, index: int) -> Point:
        self._check_index(index)
        return self._points[index]

    # ------------------------------------------------------------------
    # Session boundaries
    # ------------------------------------------------------------------

    def load_points(self, points: Iterable[Any]) -> None:
        """Replace the collection and the revert snapshot."""
        loaded = reindex(p if isinstance(p, Point) else point_from_candidate(p, i)
                         for i, p in enumerate(points))
        self._points = loaded
        self._snapshot = list(loaded)
        self._selected = []
        self.has_unsaved_changes = False
        logger.debug(f"Loaded {len(loaded)} points")
        self._notify("points")

    def revert(self) -> None:
        """Restore the last loaded/committed state."""
        self._points = list(self._snapshot)
        self._selected = []
        self.has_unsaved_changes = False
        self._notify("points")

    def commit(self, points: Optional[Iterable[Point]] = None) -> None:
        """Record a successful save: the snapshot becomes the saved points."""
        if points is not None:
            self._points = reindex(points)
        self._snapshot = list(self._points)
        self.has_unsaved_changes = False

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_point(self, candidate: Any) -> Point:
        """Append a user-entered point.

        Raises:
            PointValidationError: if the coordinates are not finite numbers
                within range.
        """
        point = point_from_candidate(candidate, len(self._points))
        self._points.append(point)
        self._mark_dirty()
        return point

    def update_point(self, index: int, patch: Mapping) -> Point:
        """Merge ``name``/``street``/``latitude``/``longitude`` into a point."""
        self._check_index(index)
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise PointValidationError(f"Unknown point field(s): {', '.join(sorted(unknown))}")

        changes = {}
        if "latitude" in patch:
            changes["latitude"] = parse_latitude(patch["latitude"])
        if "longitude" in patch:
            changes["longitude"] = parse_longitude(patch["longitude"])
        if "name" in patch:
            changes["name"] = str(patch["name"] or "").strip() or default_point_name(index)
        if "street" in patch:
            changes["street"] = str(patch["street"] or "").strip()

        updated = replace(self._points[index], **changes)
        self._points[index] = updated
        self._mark_dirty()
        return updated

    def move_point(self, index: int, latitude: float, longitude: float) -> bool:
        """Drag update: write coordinates only.

        Indices that no longer exist (a stale renderer event after a delete)
        are ignored.
        """
        if not 0 <= index < len(self._points):
            logger.info(f"Ignoring move for missing point index {index}")
            return False
        current = self._points[index]
        if current.latitude != latitude or current.longitude != longitude:
            self._points[index] = replace(current, latitude=latitude, longitude=longitude)
        self._mark_dirty()
        return True

    def delete_point(self, index: int) -> Point:
        self._check_index(index)
        removed = self._points[index]
        self._points = reindex(p for i, p in enumerate(self._points) if i != index)
        self._selected = []
        self._mark_dirty()
        return removed

    def delete_points(self, indices: Iterable[int]) -> int:
        """Remove a batch of points; returns how many were removed."""
        doomed = set(indices)
        for index in doomed:
            self._check_index(index)
        if not doomed:
            return 0
        self._points = reindex(p for i, p in enumerate(self._points) if i not in doomed)
        self._selected = []
        self._mark_dirty()
        return len(doomed)

    # ------------------------------------------------------------------
    # Multi-select
    # ------------------------------------------------------------------

    def toggle_selection(self, index: int) -> List[int]:
        self._check_index(index)
        if index in self._selected:
            self._selected.remove(index)
        else:
            self._selected.append(index)
        self._notify("selection")
        return self.selected_indices

    def clear_selection(self) -> None:
        self._selected = []
        self._notify("selection")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_index(self, index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self._points):
            raise PointIndexError(f"No point at index {index!r}")

    def _mark_dirty(self) -> None:
        self.has_unsaved_changes = True
        self._notify("points")

    def _notify(self, kind: str) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(kind)
        except Exception as e:
            logger.error(f"Point collection listener failed for {kind}: {e}")
