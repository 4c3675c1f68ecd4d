# transit_lines/routes/websocket/editor.py
"""WebSocket handlers for the "edit map" screen."""

import logging
from flask import request

from transit_lines.api.config import get_editor_config
from transit_lines.api.default_routes import get_default_routes, is_builtin_id
from transit_lines.api.editor.workflow import EditorWorkflow
from transit_lines.api.errors import EditSessionConflict, PointIndexError, ValidationError
from transit_lines.api.models import OperationResult, Route

from .base import BaseWebSocketHandler, NAMESPACE

logger = logging.getLogger(__name__)


class EditorHandler(BaseWebSocketHandler):
    """Routes editor commands and renderer messages to the edit session."""

    def _map_sender(self, sid):
        send = self.sender_for(sid)
        return lambda raw: send('map_message', raw)

    def _new_workflow(self, sid, route=None):
        return EditorWorkflow(
            self.repository,
            self._map_sender(sid),
            notify=self.sender_for(sid),
            route=route,
        )

    def _emit_result(self, result, event_name):
        payload = result.to_dict()
        payload['event'] = event_name
        self.emit_to_client('operation_result', payload)

    def _with_session(self, event_name, action):
        """Run ``action(workflow)`` for the caller's session and report state."""
        workflow = self.manager.get_session(request.sid)
        if workflow is None:
            self._emit_result(
                OperationResult.failure("No route is open for editing", kind="not_found"), event_name
            )
            return None
        try:
            outcome = action(workflow)
        except (ValidationError, PointIndexError) as e:
            logger.info(f"[WS] {event_name} rejected for {request.sid}: {e}")
            self._emit_result(OperationResult.failure(str(e), kind="validation", route_id=workflow.route_id), event_name)
            return None
        except Exception as e:
            self.handle_error(e, event_name)
            return None

        self.emit_to_client('editor_state', workflow.state())
        return outcome

    def _load_route(self, data):
        """Route to edit from an ``open_editor`` payload; None if unknown."""
        route_id = data.get('routeId')
        if route_id:
            if is_builtin_id(route_id):
                return next((r for r in get_default_routes() if r.id == route_id), None)
            return self.repository.get(route_id)
        return Route(
            name=str(data.get('name') or ''),
            color=str(data.get('color') or get_editor_config()["default_route_color"]),
            public=bool(data.get('public', True)),
        )

    def register_handlers(self):
        """Register editor event handlers."""

        @self.socketio.on('open_editor', namespace=NAMESPACE)
        def handle_open_editor(data=None):
            data = data or {}
            sid = request.sid
            self.log_event('open_editor', data)

            try:
                route = self._load_route(data)
            except Exception as e:
                self.handle_error(e, 'open_editor')
                return
            if route is None:
                self._emit_result(OperationResult.failure("Route not found", kind="not_found"), 'open_editor')
                return

            try:
                workflow = self.manager.open_session(sid, self._new_workflow(sid, route))
            except EditSessionConflict as e:
                self._emit_result(OperationResult.failure(str(e), kind="busy", route_id=e.route_id), 'open_editor')
                return

            if workflow is None:
                self.emit_to_client('error', {'message': 'Server at capacity', 'event': 'open_editor'})
                return

            self.emit_to_client('editor_state', workflow.state())

        @self.socketio.on('map_message', namespace=NAMESPACE)
        def handle_map_message(data):
            workflow = self.manager.get_session(request.sid)
            if workflow is None:
                logger.debug(f"[WS] map_message without an open editor from {request.sid}")
                return
            if workflow.handle_map_message(data):
                self.emit_to_client('editor_state', workflow.state())

        @self.socketio.on('load_points', namespace=NAMESPACE)
        def handle_load_points(data=None):
            points = (data or {}).get('points', [])
            self._with_session('load_points', lambda w: w.load_points(points))

        @self.socketio.on('add_point', namespace=NAMESPACE)
        def handle_add_point(data=None):
            self._with_session('add_point', lambda w: w.add_point((data or {}).get('point', data)))

        @self.socketio.on('update_point', namespace=NAMESPACE)
        def handle_update_point(data=None):
            data = data or {}
            self._with_session('update_point', lambda w: w.update_point(data.get('index'), data.get('patch') or {}))

        @self.socketio.on('delete_point', namespace=NAMESPACE)
        def handle_delete_point(data=None):
            self._with_session('delete_point', lambda w: w.delete_point((data or {}).get('index')))

        @self.socketio.on('delete_selected', namespace=NAMESPACE)
        def handle_delete_selected(data=None):
            self._with_session('delete_selected', lambda w: w.delete_selected())

        @self.socketio.on('set_multi_select', namespace=NAMESPACE)
        def handle_set_multi_select(data=None):
            self._with_session('set_multi_select', lambda w: w.set_multi_select((data or {}).get('enabled', False)))

        @self.socketio.on('set_add_point_mode', namespace=NAMESPACE)
        def handle_set_add_point_mode(data=None):
            self._with_session('set_add_point_mode', lambda w: w.set_add_point_mode((data or {}).get('enabled', False)))

        @self.socketio.on('update_route_details', namespace=NAMESPACE)
        def handle_update_route_details(data=None):
            data = data or {}
            self._with_session('update_route_details', lambda w: w.update_details(
                name=data.get('name'), color=data.get('color'), public=data.get('public')))

        @self.socketio.on('clear_map', namespace=NAMESPACE)
        def handle_clear_map(data=None):
            self._with_session('clear_map', lambda w: w.clear_map())

        @self.socketio.on('revert_changes', namespace=NAMESPACE)
        def handle_revert_changes(data=None):
            self._with_session('revert_changes', lambda w: w.revert())

        @self.socketio.on('save_route', namespace=NAMESPACE)
        def handle_save_route(data=None):
            actor = self.manager.get_actor(request.sid)
            result = self._with_session('save_route', lambda w: w.save(actor))
            if result is not None:
                self._emit_result(result, 'save_route')

        @self.socketio.on('hand_off_editor', namespace=NAMESPACE)
        def handle_hand_off_editor(data=None):
            sid = request.sid
            previous = (data or {}).get('from')
            self.log_event('hand_off_editor', {'from': previous})

            actor = self.manager.get_actor(sid)
            if not previous or not actor or self.manager.get_actor(previous) != actor:
                self._emit_result(
                    OperationResult.failure("Edit session cannot be handed to this connection", kind="forbidden"),
                    'hand_off_editor',
                )
                return

            workflow = self.manager.hand_off(previous, sid)
            if workflow is None:
                self._emit_result(OperationResult.failure("No edit session to hand off", kind="not_found"),
                                  'hand_off_editor')
                return

            workflow.attach_transport(self._map_sender(sid), self.sender_for(sid))
            self.emit_to_client('editor_state', workflow.state())

        @self.socketio.on('close_editor', namespace=NAMESPACE)
        def handle_close_editor(data=None):
            workflow = self.manager.close_session(request.sid, 'closed')
            self._emit_result(
                OperationResult.ok(workflow.route_id if workflow else None), 'close_editor'
            )
