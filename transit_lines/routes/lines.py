# transit_lines/routes/lines.py
"""HTTP routes for the "manage lines" screen."""

import logging

from flask import Blueprint, jsonify, request
from google.api_core.exceptions import GoogleAPIError

from transit_lines.api.config import get_editor_config, get_google_maps_config
from transit_lines.api.default_routes import get_default_routes, is_builtin_id
from transit_lines.api.directions import get_route_between
from transit_lines.api.errors import ValidationError
from transit_lines.api.models import Route, point_from_candidate

logger = logging.getLogger(__name__)

ACTOR_HEADER = "X-Actor-Id"

STATUS_BY_KIND = {
    "ok": 200,
    "validation": 400,
    "forbidden": 403,
    "not_found": 404,
    "busy": 409,
    "remote": 502,
}


def _flag(name, default):
    value = request.args.get(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


def _parse_points(raw):
    if not isinstance(raw, list):
        raise ValidationError("points must be a list")
    return [point_from_candidate(candidate, i) for i, candidate in enumerate(raw)]


def _result_response(result, created=False):
    status = STATUS_BY_KIND.get(result.kind, 500)
    if created and result.success:
        status = 201
    return jsonify(result.to_dict()), status


def create_lines_blueprint(repository):
    """Create and configure the lines blueprint.

    Args:
        repository: RouteRepository used for every read and write

    Returns:
        Configured Flask Blueprint
    """
    lines_bp = Blueprint("lines", __name__, url_prefix="/lines")

    @lines_bp.route("/health")
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok", "service": "lines"})

    @lines_bp.route("/api/config")
    def api_config():
        """Return map configuration for the renderer page."""
        config = get_google_maps_config()

        if config.get("api_key"):
            return jsonify({
                "auth_type": "api_key",
                "google_maps_api_key": config["api_key"],
                "default_route_color": get_editor_config()["default_route_color"],
            })
        else:
            return jsonify({
                "error": "No Google Maps API key configured"
            }), 500

    @lines_bp.route("/api/routes", methods=["GET"])
    def list_routes():
        public_only = _flag("public", False)
        routes = get_default_routes() if _flag("builtin", True) else []
        try:
            routes.extend(repository.list_routes(public_only=public_only))
        except GoogleAPIError as e:
            logger.error(f"Failed to list routes: {e}")
            return jsonify({"success": False, "error": str(e)}), 502
        return jsonify({"routes": [r.to_dict() for r in routes]})

    @lines_bp.route("/api/routes/<route_id>", methods=["GET"])
    def get_route(route_id):
        if is_builtin_id(route_id):
            route = next((r for r in get_default_routes() if r.id == route_id), None)
        else:
            try:
                route = repository.get(route_id)
            except GoogleAPIError as e:
                logger.error(f"Failed to load route {route_id}: {e}")
                return jsonify({"success": False, "error": str(e)}), 502
        if route is None:
            return jsonify({"success": False, "error": "Route not found"}), 404
        return jsonify(route.to_dict())

    @lines_bp.route("/api/routes", methods=["POST"])
    def create_route():
        data = request.get_json(silent=True) or {}
        try:
            route = Route(
                name=str(data.get("name") or ""),
                color=str(data.get("color") or get_editor_config()["default_route_color"]),
                points=_parse_points(data.get("points", [])),
                public=bool(data.get("public", True)),
            )
        except ValidationError as e:
            return jsonify({"success": False, "error": str(e), "kind": "validation"}), 400

        result = repository.save(route, request.headers.get(ACTOR_HEADER))
        return _result_response(result, created=True)

    @lines_bp.route("/api/routes/<route_id>", methods=["PUT"])
    def update_route(route_id):
        if is_builtin_id(route_id):
            return jsonify({"success": False, "error": "Built-in routes cannot be modified", "kind": "forbidden"}), 403

        data = request.get_json(silent=True) or {}
        try:
            route = repository.get(route_id)
        except GoogleAPIError as e:
            logger.error(f"Failed to load route {route_id}: {e}")
            return jsonify({"success": False, "error": str(e)}), 502
        if route is None:
            return jsonify({"success": False, "error": "Route not found", "kind": "not_found"}), 404

        try:
            if "name" in data:
                route.name = str(data["name"] or "")
            if "color" in data:
                route.color = str(data["color"] or "")
            if "public" in data:
                route.public = bool(data["public"])
            if "points" in data:
                route.points = _parse_points(data["points"])
        except ValidationError as e:
            return jsonify({"success": False, "error": str(e), "kind": "validation"}), 400

        result = repository.save(route, request.headers.get(ACTOR_HEADER))
        return _result_response(result)

    @lines_bp.route("/api/routes/<route_id>", methods=["DELETE"])
    def delete_route(route_id):
        result = repository.delete(route_id, request.headers.get(ACTOR_HEADER))
        return _result_response(result)

    @lines_bp.route("/api/directions", methods=["POST"])
    def directions():
        """Path between two points, straight line when the lookup fails."""
        data = request.get_json(silent=True) or {}
        try:
            route = get_route_between(data.get("start"), data.get("end"), data.get("profile"))
        except ValueError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        return jsonify(route)

    return lines_bp


__all__ = ["create_lines_blueprint"]
