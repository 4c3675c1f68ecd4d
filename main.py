"""
Transit Lines – main application entry point

* Flask app + Socket.IO (threading mode) serving the route editor.
* HTTP API under `/lines`, Socket.IO namespace `/lines/ws`.
* Maintenance commands: `flask --app main routes --help`.
"""

import logging

from dotenv import load_dotenv

# --------------------------------------------------------------------------- #
# Environment & logging
# --------------------------------------------------------------------------- #
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

from transit_lines.api.config import get_port  # noqa: E402
from transit_lines.app import create_app  # noqa: E402

app, socketio = create_app()

# --------------------------------------------------------------------------- #
# Local development runner ( `python main.py` )
# --------------------------------------------------------------------------- #
if __name__ == "__main__":
    port = get_port()
    logger.info("Starting lines app on http://localhost:%d", port)
    socketio.run(app, host="0.0.0.0", port=port, debug=False, allow_unsafe_werkzeug=True)

__all__ = ["app", "socketio"]
