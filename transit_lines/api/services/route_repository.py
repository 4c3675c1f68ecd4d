# transit_lines/api/services/route_repository.py
"""Firestore persistence for routes.

Every write sends the full denormalized document: the legacy ``coordinates``
array, the ``points`` array with metadata, and ``totalPoints``. Remote errors
are returned as :class:`OperationResult` failures, never raised.
"""

import logging
import re
import threading
from typing import Any, Callable, Dict, List, Optional

from google.api_core.exceptions import GoogleAPIError, NotFound, PermissionDenied
from google.cloud import firestore

from transit_lines.api.default_routes import is_builtin_id
from transit_lines.api.models import OperationResult, Route

logger = logging.getLogger(__name__)

MIN_ROUTE_POINTS = 2
HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


class RouteSubscription:
    """Handle for a live route list listener.

    ``close()`` must be called when the owning screen goes away; after that no
    further updates are delivered even if the listener thread is still
    draining.
    """

    def __init__(self):
        self._watch = None
        self._lock = threading.Lock()
        self.closed = False

    def _attach(self, watch) -> None:
        with self._lock:
            if self.closed:
                watch.unsubscribe()
                return
            self._watch = watch

    def close(self) -> None:
        with self._lock:
            if self.closed:
                return
            self.closed = True
            watch, self._watch = self._watch, None
        if watch is not None:
            try:
                watch.unsubscribe()
            except Exception as e:
                logger.warning(f"Error closing route listener: {e}")
        logger.debug("Route listener closed")


class RouteRepository:
    """Create, update, delete and query route documents."""

    def __init__(self, client, collection: str = "routes"):
        self.client = client
        self.collection_name = collection
        self._in_flight = set()
        self._lock = threading.Lock()

    @property
    def collection(self):
        return self.client.collection(self.collection_name)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def validate(self, route: Route, actor: Optional[str]) -> Optional[str]:
        """Return a user-facing message if the route cannot be saved."""
        if route.builtin or is_builtin_id(route.id):
            return "Built-in routes cannot be saved"
        if not (route.name or "").strip():
            return "Route name is required"
        if not HEX_COLOR.match(route.color or ""):
            return f"Color must be a hex value like #FF5722, got {route.color!r}"
        if len(route.points) < MIN_ROUTE_POINTS:
            return f"A route needs at least {MIN_ROUTE_POINTS} points to be saved"
        if not actor:
            return "You must be signed in to save routes"
        return None

    def save(self, route: Route, actor: Optional[str]) -> OperationResult:
        """Create the route when it has no id, otherwise update it.

        Returns:
            OperationResult carrying the route id on success
        """
        problem = self.validate(route, actor)
        if problem:
            logger.info(f"Save rejected for route {route.id or '<new>'}: {problem}")
            return OperationResult.failure(problem, kind="validation", route_id=route.id)

        guard_key = route.id
        if guard_key is not None and not self._acquire(guard_key):
            logger.warning(f"Save already in progress for route {guard_key}")
            return OperationResult.failure(
                "A save for this route is already in progress", kind="busy", route_id=route.id
            )

        data = route.to_document()
        data["name"] = route.name.strip()
        data["updatedBy"] = actor
        data["updatedAt"] = firestore.SERVER_TIMESTAMP

        try:
            if route.id is None:
                data["createdBy"] = actor
                data["createdAt"] = firestore.SERVER_TIMESTAMP
                ref = self.collection.document()
                ref.set(data)
                logger.info(f"✅ Created route {ref.id} ({route.total_points} points) by {actor}")
                return OperationResult.ok(ref.id)

            self.collection.document(route.id).update(data)
            logger.info(f"✅ Updated route {route.id} ({route.total_points} points) by {actor}")
            return OperationResult.ok(route.id)

        except NotFound:
            logger.warning(f"Route {route.id} no longer exists")
            return OperationResult.failure("Route no longer exists", kind="not_found", route_id=route.id)
        except PermissionDenied as e:
            logger.error(f"❌ Permission denied saving route {route.id or '<new>'}: {e}")
            return OperationResult.failure(f"Permission denied: {e.message}", route_id=route.id)
        except GoogleAPIError as e:
            logger.error(f"❌ Failed to save route {route.id or '<new>'}: {e}")
            return OperationResult.failure(str(e), route_id=route.id)
        except Exception as e:
            logger.exception(f"❌ Unexpected error saving route {route.id or '<new>'}: {e}")
            return OperationResult.failure(f"Save failed: {e}", route_id=route.id)
        finally:
            if guard_key is not None:
                self._release(guard_key)

    def delete(self, route_id: str, actor: Optional[str]) -> OperationResult:
        """Permanently remove a stored route."""
        if is_builtin_id(route_id):
            return OperationResult.failure("Built-in routes cannot be deleted", kind="forbidden", route_id=route_id)
        if not route_id:
            return OperationResult.failure("Route id is required", kind="validation")
        if not actor:
            return OperationResult.failure("You must be signed in to delete routes", kind="validation", route_id=route_id)

        if not self._acquire(route_id):
            return OperationResult.failure(
                "Another operation on this route is in progress", kind="busy", route_id=route_id
            )
        try:
            ref = self.collection.document(route_id)
            if not ref.get().exists:
                return OperationResult.failure("Route not found", kind="not_found", route_id=route_id)
            ref.delete()
            logger.info(f"🗑️ Route {route_id} deleted by {actor}")
            return OperationResult.ok(route_id)
        except PermissionDenied as e:
            logger.error(f"❌ Permission denied deleting route {route_id}: {e}")
            return OperationResult.failure(f"Permission denied: {e.message}", route_id=route_id)
        except GoogleAPIError as e:
            logger.error(f"❌ Failed to delete route {route_id}: {e}")
            return OperationResult.failure(str(e), route_id=route_id)
        except Exception as e:
            logger.exception(f"❌ Unexpected error deleting route {route_id}: {e}")
            return OperationResult.failure(f"Delete failed: {e}", route_id=route_id)
        finally:
            self._release(route_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, route_id: str) -> Optional[Route]:
        if not route_id or is_builtin_id(route_id):
            return None
        snapshot = self.collection.document(route_id).get()
        if not snapshot.exists:
            return None
        return Route.from_document(snapshot.id, snapshot.to_dict() or {})

    def list_routes(self, public_only: bool = False) -> List[Route]:
        """All stored routes, newest first."""
        query = self.collection.order_by("createdAt", direction=firestore.Query.DESCENDING)
        routes = [Route.from_document(doc.id, doc.to_dict() or {}) for doc in query.stream()]
        if public_only:
            routes = [r for r in routes if r.public]
        return routes

    def watch_routes(
        self,
        on_update: Callable[[List[Route]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> RouteSubscription:
        """Start a live listener on the route list."""
        subscription = RouteSubscription()

        def _on_snapshot(docs, changes, read_time):
            if subscription.closed:
                return
            try:
                routes = [Route.from_document(doc.id, doc.to_dict() or {}) for doc in docs]
                routes.sort(key=_created_sort_key, reverse=True)
                on_update(routes)
            except Exception as e:
                logger.error(f"Route listener callback failed: {e}")
                if on_error is not None:
                    on_error(e)

        try:
            watch = self.collection.on_snapshot(_on_snapshot)
        except GoogleAPIError as e:
            logger.error(f"❌ Could not start route listener: {e}")
            subscription.closed = True
            if on_error is not None:
                on_error(e)
            return subscription

        subscription._attach(watch)
        logger.info("📡 Route listener started")
        return subscription

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def make_all_public(self, actor: str) -> int:
        """Flip ``public`` on every stored route; returns how many changed."""
        updated = 0
        for doc in self.collection.stream():
            data = doc.to_dict() or {}
            if data.get("public"):
                continue
            logger.info(f"Making route public: {data.get('name') or data.get('title') or doc.id}")
            self.collection.document(doc.id).update({
                "public": True,
                "updatedBy": actor,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            })
            updated += 1
        logger.info(f"✅ {updated} routes made public")
        return updated

    def export_routes(self) -> Dict[str, Dict[str, Any]]:
        """Raw documents keyed by id, for backups."""
        return {doc.id: doc.to_dict() or {} for doc in self.collection.stream()}

    # ------------------------------------------------------------------
    # In-flight guard
    # ------------------------------------------------------------------

    def _acquire(self, key: str) -> bool:
        with self._lock:
            if key in self._in_flight:
                return False
            self._in_flight.add(key)
            return True

    def _release(self, key: str) -> None:
        with self._lock:
            self._in_flight.discard(key)


def _created_sort_key(route: Route):
    # Pending server timestamps are None on the first local snapshot; newest
    value = route.created_at
    return (value is None, str(value) if value is not None else "")
