# transit_lines/api/errors.py
"""Exception types raised by the editing core."""


class ValidationError(ValueError):
    """User-supplied data was rejected before any remote call."""


class PointValidationError(ValidationError):
    """A point candidate or patch failed coordinate validation."""


class PointIndexError(IndexError):
    """A point index does not exist in the current collection."""


class EditSessionConflict(RuntimeError):
    """The route is already being edited by another connection."""

    def __init__(self, route_id: str, owner: str):
        super().__init__(f"Route {route_id} is already being edited by another session")
        self.route_id = route_id
        self.owner = owner
