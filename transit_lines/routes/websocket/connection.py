# transit_lines/routes/websocket/connection.py
"""WebSocket connection and disconnection handlers."""

import time
import logging
from flask import request

from .base import BaseWebSocketHandler, NAMESPACE

logger = logging.getLogger(__name__)


class ConnectionHandler(BaseWebSocketHandler):
    """Handles WebSocket connection lifecycle events."""

    def register_handlers(self):
        """Register connection-related event handlers."""

        @self.socketio.on('connect', namespace=NAMESPACE)
        def handle_connect(auth=None):
            """Handle WebSocket connection from the app."""
            actor = None
            if isinstance(auth, dict):
                actor = auth.get('uid') or None

            self.manager.register_connection(request.sid, actor)
            logger.info(f"🔗 Client connected to {NAMESPACE}: {request.sid}")

            self.emit_to_client('connected', {
                'session_id': request.sid,
                'status': 'connected',
                'actor': actor,
            })

        @self.socketio.on('disconnect', namespace=NAMESPACE)
        def handle_disconnect(*args):
            """Handle WebSocket disconnection."""
            sid = request.sid
            try:
                self.manager.release_connection(sid, 'client_disconnect')
                logger.info(f"🔌 WebSocket disconnected, connection {sid} released")
            except Exception as e:
                logger.error(f"[WS] Error releasing connection {sid}: {e}")

        @self.socketio.on('ping', namespace=NAMESPACE)
        def handle_ping():
            """Handle ping for connection testing."""
            self.emit_to_client('pong', {'timestamp': time.time()})
