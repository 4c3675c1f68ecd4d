# transit_lines/app.py
"""Application factory: Flask app, Socket.IO server and their wiring."""

import os
import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from transit_lines.api.config import get_secret_key, get_websocket_config
from transit_lines.api.datastore import Datastore
from transit_lines.api.editor.session_manager import get_session_manager
from transit_lines.api.services.route_repository import RouteRepository
from transit_lines.cli import routes_cli
from transit_lines.routes.lines import create_lines_blueprint
from transit_lines.routes.websocket import NAMESPACE, register_websocket_handlers

logger = logging.getLogger(__name__)


def create_app(repository=None, session_manager=None, testing=False):
    """Build the application.

    Args:
        repository: RouteRepository to use; defaults to one over the
            process-wide Firestore handle
        session_manager: EditSessionManager; defaults to the global one
        testing: Enable Flask testing mode

    Returns:
        Tuple of (app, socketio)
    """
    app = Flask(__name__)

    flask_secret_key = get_secret_key() or os.urandom(32).hex()
    if get_secret_key() is None:
        logger.warning("No FLASK_SECRET_KEY found. Generated a temporary key.")
    app.secret_key = flask_secret_key
    app.config.update(TESTING=testing)

    # CORS for local dev / cross‑origin front‑end requests
    CORS(app, origins="*", supports_credentials=True)

    if repository is None:
        datastore = Datastore.initialize()
        repository = RouteRepository(datastore.client, datastore.routes_collection)
    if session_manager is None:
        session_manager = get_session_manager()

    app.extensions["transit_lines"] = {
        "repository": repository,
        "session_manager": session_manager,
    }

    ws_config = get_websocket_config()
    socketio = SocketIO(
        app,
        cors_allowed_origins=ws_config["cors_allowed_origins"],
        async_mode="threading",
        ping_interval=ws_config["ping_interval"],
        ping_timeout=ws_config["ping_timeout"],
        logger=False,
        engineio_logger=False,
    )
    logger.info("Socket.IO initialised (async_mode=threading)")

    app.register_blueprint(create_lines_blueprint(repository))
    register_websocket_handlers(socketio, repository, session_manager)
    app.cli.add_command(routes_cli)

    @app.route("/debug")
    def debug():
        """Simple JSON health endpoint."""
        return {
            "status": "ok",
            "socketio_initialized": True,
            "endpoints": {
                "health": "/lines/health",
                "websocket_namespace": NAMESPACE,
            },
        }

    return app, socketio


__all__ = ["create_app"]
