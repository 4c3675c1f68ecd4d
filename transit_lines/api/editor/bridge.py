# transit_lines/api/editor/bridge.py
"""Host side of the Map Bridge channel."""

import logging
import threading
from typing import Any, Callable, Dict, Optional

from transit_lines.api.editor.protocol import encode

logger = logging.getLogger(__name__)


class MapBridge:
    """Send renderer-bound messages, holding one back until the map is ready.

    Before the renderer signals readiness only the most recent message is
    kept; :meth:`mark_ready` delivers it once.
    """

    def __init__(self, send: Callable[[str], Any]):
        self._send = send
        self._ready = False
        self._pending: Optional[Dict[str, Any]] = None
        self._lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def pending(self) -> Optional[Dict[str, Any]]:
        return self._pending

    def post(self, message: Dict[str, Any]) -> bool:
        """Send now, or park as the pending message.

        Returns:
            True if the message was handed to the transport
        """
        with self._lock:
            if not self._ready:
                if self._pending is not None:
                    logger.debug(f"Replacing pending {self._pending.get('type')} with {message.get('type')}")
                self._pending = message
                return False
        return self._deliver(message)

    def mark_ready(self) -> bool:
        """Record renderer readiness; flushes the pending message the first time."""
        with self._lock:
            if self._ready:
                logger.debug("Renderer ready signal repeated, nothing to flush")
                return False
            self._ready = True
            pending, self._pending = self._pending, None

        logger.info("🗺️ Map renderer ready")
        if pending is not None:
            self._deliver(pending)
        return True

    def reset(self) -> None:
        """Renderer reloaded; queue again until the next ready signal."""
        with self._lock:
            self._ready = False
            self._pending = None

    def _deliver(self, message: Dict[str, Any]) -> bool:
        try:
            self._send(encode(message))
            return True
        except Exception as e:
            logger.error(f"Failed to send {message.get('type')} to renderer: {e}")
            return False
