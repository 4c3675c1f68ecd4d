# transit_lines/routes/websocket/routes_feed.py
"""Live route list for the "manage lines" screen."""

import logging
from flask import request

from .base import BaseWebSocketHandler, NAMESPACE

logger = logging.getLogger(__name__)


class RoutesFeedHandler(BaseWebSocketHandler):
    """Streams route list updates until the client unsubscribes or leaves."""

    def register_handlers(self):
        """Register subscription event handlers."""

        @self.socketio.on('subscribe_routes', namespace=NAMESPACE)
        def handle_subscribe_routes(data=None):
            sid = request.sid
            self.log_event('subscribe_routes')
            send = self.sender_for(sid)

            # one live listener per connection
            self.manager.close_subscriptions(sid)

            def on_update(routes):
                send('routes_updated', {'routes': [r.to_dict() for r in routes]})

            def on_error(error):
                logger.warning(f"[WS] Route feed error for {sid}: {error}")
                send('routes_error', {'message': str(error)})

            subscription = self.repository.watch_routes(on_update, on_error)
            if subscription.closed:
                return
            self.manager.attach_subscription(sid, subscription)

        @self.socketio.on('unsubscribe_routes', namespace=NAMESPACE)
        def handle_unsubscribe_routes(data=None):
            closed = self.manager.close_subscriptions(request.sid)
            self.emit_to_client('operation_result', {
                'success': True,
                'error': None,
                'kind': 'ok',
                'route_id': None,
                'event': 'unsubscribe_routes',
                'closed': closed,
            })

        @self.socketio.on('get_stats', namespace=NAMESPACE)
        def handle_get_stats(data=None):
            self.emit_to_client('stats', self.manager.get_stats())
