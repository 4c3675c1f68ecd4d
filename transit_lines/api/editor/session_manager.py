# transit_lines/api/editor/session_manager.py
"""Edit session lifecycle management.

Each connection owns at most one edit session, and a stored route is edited by
at most one connection at a time. Moving an edit between screens hands the
same session object to the new owner.
"""

import time
import threading
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from transit_lines.api.config import get_editor_config
from transit_lines.api.editor.workflow import EditorWorkflow
from transit_lines.api.errors import EditSessionConflict

logger = logging.getLogger(__name__)


class EditSessionManager:
    """Tracks edit sessions, their owners and live subscriptions."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, start_cleanup: bool = True):
        self.config = config or get_editor_config()
        self.sessions: Dict[str, EditorWorkflow] = {}
        self.actors: Dict[str, Optional[str]] = {}
        self.subscriptions: Dict[str, List[Any]] = defaultdict(list)

        # Thread safety
        self.lock = threading.RLock()

        self.cleanup_thread = None
        if start_cleanup:
            self.cleanup_thread = threading.Thread(
                target=self._cleanup_loop,
                daemon=True
            )
            self.cleanup_thread.start()

        logger.info("EditSessionManager initialized")

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def register_connection(self, owner: str, actor: Optional[str] = None) -> None:
        with self.lock:
            self.actors[owner] = actor
        logger.info(f"Registered connection {owner} (actor={actor or 'anonymous'})")

    def get_actor(self, owner: str) -> Optional[str]:
        with self.lock:
            return self.actors.get(owner)

    def release_connection(self, owner: str, reason: str = "disconnect") -> None:
        """Forget everything held by a connection."""
        self.close_session(owner, reason)
        closed = self.close_subscriptions(owner)
        if closed:
            logger.info(f"Closed {closed} route feed(s) of {owner}")
        with self.lock:
            self.actors.pop(owner, None)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def open_session(self, owner: str, workflow: EditorWorkflow) -> Optional[EditorWorkflow]:
        """Register ``workflow`` as the edit session of ``owner``.

        Returns:
            The session, or None if the server is at capacity

        Raises:
            EditSessionConflict: if another connection is editing the route
        """
        with self.lock:
            route_id = workflow.route_id
            if route_id is not None:
                for other_owner, other in self.sessions.items():
                    if other_owner != owner and other.route_id == route_id:
                        logger.warning(f"Route {route_id} already edited by {other_owner}")
                        raise EditSessionConflict(route_id, other_owner)

            replacing = owner in self.sessions
            if not replacing and len(self.sessions) >= self.config["max_sessions"]:
                logger.warning("Maximum concurrent edit sessions reached")
                return None

            if replacing:
                logger.info(f"Replacing edit session of {owner}")
            workflow.owner = owner
            self.sessions[owner] = workflow
            logger.info(f"Opened edit session for route {route_id or '<new>'} owned by {owner}")
            return workflow

    def get_session(self, owner: str) -> Optional[EditorWorkflow]:
        with self.lock:
            workflow = self.sessions.get(owner)
            if workflow:
                workflow.touch()
            return workflow

    def hand_off(self, owner: str, new_owner: str) -> Optional[EditorWorkflow]:
        """Move the session of ``owner`` to ``new_owner`` without copying it."""
        with self.lock:
            workflow = self.sessions.pop(owner, None)
            if workflow is None:
                return None
            if new_owner in self.sessions and self.sessions[new_owner] is not workflow:
                logger.info(f"Dropping previous edit session of {new_owner} on hand-off")
            self.sessions[new_owner] = workflow
            workflow.owner = new_owner
            workflow.touch()
            logger.info(f"Edit session for route {workflow.route_id or '<new>'} handed from {owner} to {new_owner}")
            return workflow

    def close_session(self, owner: str, reason: str = "manual") -> Optional[EditorWorkflow]:
        """Remove an edit session; the owner's route feed stays open."""
        with self.lock:
            workflow = self.sessions.pop(owner, None)

        if workflow is not None:
            duration = (datetime.now() - workflow.created_at).total_seconds()
            logger.info(
                f"Closed edit session of {owner} - "
                f"Reason: {reason}, Duration: {duration:.1f}s, "
                f"Unsaved changes: {workflow.points.has_unsaved_changes}"
            )
        return workflow

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def attach_subscription(self, owner: str, subscription: Any) -> None:
        with self.lock:
            self.subscriptions[owner].append(subscription)

    def close_subscriptions(self, owner: str) -> int:
        with self.lock:
            subscriptions = self.subscriptions.pop(owner, [])
        for subscription in subscriptions:
            subscription.close()
        return len(subscriptions)

    # ------------------------------------------------------------------
    # Stats and expiry
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        """Get overall session manager statistics."""
        with self.lock:
            return {
                "total_sessions": len(self.sessions),
                "unsaved_sessions": sum(1 for s in self.sessions.values() if s.points.has_unsaved_changes),
                "connections": len(self.actors),
                "live_subscriptions": sum(len(subs) for subs in self.subscriptions.values()),
                "config": {
                    "max_sessions": self.config["max_sessions"],
                    "timeout_seconds": self.config["session_timeout_seconds"]
                }
            }

    def _cleanup_loop(self):
        """Background thread to clean up expired sessions."""
        while True:
            try:
                time.sleep(self.config.get("cleanup_interval_seconds", 30))
                self._cleanup_expired_sessions()
            except Exception as e:
                logger.error(f"Error in cleanup loop: {e}")

    def _cleanup_expired_sessions(self) -> List[str]:
        """Close sessions idle for longer than the timeout."""
        timeout_seconds = self.config["session_timeout_seconds"]
        cutoff_time = datetime.now() - timedelta(seconds=timeout_seconds)

        with self.lock:
            expired = [
                owner for owner, workflow in self.sessions.items()
                if workflow.last_activity < cutoff_time and not workflow.saving
            ]

        for owner in expired:
            self.close_session(owner, "timeout")

        if expired:
            logger.info(f"Cleaned up {len(expired)} expired edit sessions")
        return expired


# Global session manager instance
_session_manager = None


def get_session_manager() -> EditSessionManager:
    """Get the global EditSessionManager instance."""
    global _session_manager
    if _session_manager is None:
        _session_manager = EditSessionManager()
    return _session_manager
