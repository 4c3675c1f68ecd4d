# transit_lines/api/config.py
"""Configuration management for the route editing service."""
import os
from dotenv import load_dotenv

load_dotenv()

DEFAULT_ROUTE_COLOR = "#FF5722"


def get_secret_key():
    """Get the Flask secret key, or None when it must be generated."""
    return os.getenv("FLASK_SECRET_KEY")


def get_google_maps_config():
    """Get Google Maps configuration."""
    return {
        "api_key": os.getenv("GOOGLE_MAPS_API_KEY", ""),
    }


def get_port():
    """Get port configuration."""
    return int(os.getenv("PORT", 5000))


def get_firestore_config():
    """Get Firestore configuration.

    ``FIRESTORE_EMULATOR_HOST`` is read by the client library itself; it is
    reported here so startup logs show which backend is in use.
    """
    return {
        "project_id": os.getenv("FIRESTORE_PROJECT_ID") or os.getenv("GOOGLE_CLOUD_PROJECT"),
        "routes_collection": os.getenv("ROUTES_COLLECTION", "routes"),
        "emulator_host": os.getenv("FIRESTORE_EMULATOR_HOST", ""),
    }


def get_editor_config():
    """Get edit session configuration."""
    return {
        "session_timeout_seconds": int(os.getenv("EDIT_SESSION_TIMEOUT_SECONDS", "1800")),
        "max_sessions": int(os.getenv("MAX_EDIT_SESSIONS", "100")),
        "cleanup_interval_seconds": int(os.getenv("EDIT_SESSION_CLEANUP_SECONDS", "30")),
        "default_route_color": os.getenv("DEFAULT_ROUTE_COLOR", DEFAULT_ROUTE_COLOR),
    }


def get_directions_config():
    """Get directions lookup configuration."""
    return {
        "default_profile": os.getenv("DIRECTIONS_DEFAULT_PROFILE", "driving-car"),
        "timeout_seconds": int(os.getenv("DIRECTIONS_TIMEOUT_SECONDS", "10")),
    }


def get_websocket_config():
    """Get WebSocket configuration."""
    return {
        "ping_interval": int(os.getenv("WEBSOCKET_PING_INTERVAL", "25")),
        "ping_timeout": int(os.getenv("WEBSOCKET_PING_TIMEOUT", "60")),
        "cors_allowed_origins": os.getenv("SOCKETIO_CORS_ORIGINS", "*").split(",")
    }
