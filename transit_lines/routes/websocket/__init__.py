# transit_lines/routes/websocket/__init__.py
"""WebSocket route handlers initialization."""

import logging

from .connection import ConnectionHandler
from .editor import EditorHandler
from .routes_feed import RoutesFeedHandler
from .base import NAMESPACE

logger = logging.getLogger(__name__)


def register_websocket_handlers(socketio, repository, manager):
    """Register all WebSocket event handlers with SocketIO.

    Args:
        socketio: Flask-SocketIO instance
        repository: RouteRepository shared by all handlers
        manager: EditSessionManager owning edit sessions and subscriptions
    """
    logger.info("Registering WebSocket handlers...")

    try:
        handlers = [
            ConnectionHandler(socketio, repository, manager, NAMESPACE),
            EditorHandler(socketio, repository, manager, NAMESPACE),
            RoutesFeedHandler(socketio, repository, manager, NAMESPACE),
        ]

        for handler in handlers:
            logger.info(f"Registering {type(handler).__name__} for namespace: {NAMESPACE}")
            handler.register_handlers()

        logger.info("✅ WebSocket handlers registered successfully")

    except Exception as e:
        logger.error(f"❌ Failed to register WebSocket handlers: {e}")
        logger.exception("WebSocket registration error:")
        raise


__all__ = ['register_websocket_handlers', 'NAMESPACE']
