"""Shared fixtures: an in-memory Firestore stand-in and the wired app."""

import copy
import itertools
from datetime import datetime, timedelta, timezone

import pytest
from google.api_core.exceptions import NotFound
from google.cloud import firestore

from transit_lines.api.datastore import Datastore
from transit_lines.api.editor.session_manager import EditSessionManager
from transit_lines.api.services.route_repository import RouteRepository
from transit_lines.app import create_app
from transit_lines.routes.websocket import NAMESPACE

WRITE_OPS = {"set", "update", "delete"}


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeWatch:
    def __init__(self):
        self.unsubscribed = False

    def unsubscribe(self):
        self.unsubscribed = True


class FakeDocument:
    def __init__(self, collection, doc_id):
        self._collection = collection
        self.id = doc_id

    def set(self, data):
        self._collection._call("set", self.id)
        self._collection.docs[self.id] = self._collection._resolve(data)
        self._collection._broadcast()

    def update(self, data):
        self._collection._call("update", self.id)
        if self.id not in self._collection.docs:
            raise self._collection.not_found(self.id)
        self._collection.docs[self.id].update(self._collection._resolve(data))
        self._collection._broadcast()

    def delete(self):
        self._collection._call("delete", self.id)
        self._collection.docs.pop(self.id, None)
        self._collection._broadcast()

    def get(self):
        self._collection._call("get", self.id)
        return FakeSnapshot(self.id, self._collection.docs.get(self.id))


class FakeQuery:
    def __init__(self, collection, field, descending):
        self._collection = collection
        self._field = field
        self._descending = descending

    def stream(self):
        self._collection._call("stream", self._field)
        # Firestore leaves out documents that lack the ordering field
        rows = [(doc_id, data) for doc_id, data in self._collection.docs.items() if self._field in data]
        rows.sort(key=lambda row: str(row[1][self._field]), reverse=self._descending)
        return iter([FakeSnapshot(doc_id, data) for doc_id, data in rows])


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.docs = {}
        self.calls = []
        self.watches = []
        self.fail_next = None
        self.on_write = None
        self._ids = itertools.count(1)
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def document(self, doc_id=None):
        if doc_id is None:
            doc_id = f"route{next(self._ids):04d}"
        return FakeDocument(self, doc_id)

    def order_by(self, field, direction=None):
        return FakeQuery(self, field, direction == firestore.Query.DESCENDING)

    def stream(self):
        self._call("stream", None)
        return iter([FakeSnapshot(doc_id, data) for doc_id, data in self.docs.items()])

    def on_snapshot(self, callback):
        self._call("on_snapshot", None)
        watch = FakeWatch()
        self.watches.append((callback, watch))
        callback(self._snapshots(), [], self._clock)
        return watch

    def seed(self, doc_id, data):
        self.docs[doc_id] = copy.deepcopy(data)

    @staticmethod
    def not_found(doc_id):
        return NotFound(f"No document to update: {doc_id}")

    def writes(self):
        return [c for c in self.calls if c[0] in WRITE_OPS]

    def _call(self, op, target):
        self.calls.append((op, target))
        if self.on_write is not None and op in WRITE_OPS:
            self.on_write(op, target)
        if self.fail_next is not None and op in WRITE_OPS:
            error, self.fail_next = self.fail_next, None
            raise error

    def _resolve(self, data):
        resolved = {}
        for key, value in data.items():
            if value is firestore.SERVER_TIMESTAMP:
                self._clock += timedelta(seconds=1)
                value = self._clock
            resolved[key] = copy.deepcopy(value)
        return resolved

    def _snapshots(self):
        return [FakeSnapshot(doc_id, data) for doc_id, data in self.docs.items()]

    def _broadcast(self):
        for callback, watch in self.watches:
            if not watch.unsubscribed:
                callback(self._snapshots(), [], self._clock)


class FakeFirestore:
    def __init__(self):
        self.collections = {}

    def collection(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


@pytest.fixture
def fake_db():
    return FakeFirestore()


@pytest.fixture
def routes_collection(fake_db):
    return fake_db.collection("routes")


@pytest.fixture
def repository(fake_db):
    return RouteRepository(fake_db, "routes")


@pytest.fixture
def manager():
    return EditSessionManager(
        config={
            "session_timeout_seconds": 60,
            "max_sessions": 5,
            "cleanup_interval_seconds": 30,
            "default_route_color": "#FF5722",
        },
        start_cleanup=False,
    )


@pytest.fixture
def app_bundle(repository, manager):
    return create_app(repository=repository, session_manager=manager, testing=True)


@pytest.fixture
def app(app_bundle):
    return app_bundle[0]


@pytest.fixture
def socketio(app_bundle):
    return app_bundle[1]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ws_factory(app, socketio):
    clients = []

    def _connect(uid="admin-1"):
        auth = {"uid": uid} if uid else None
        ws = socketio.test_client(app, namespace=NAMESPACE, auth=auth)
        clients.append(ws)
        return ws

    yield _connect

    for ws in clients:
        if ws.is_connected(NAMESPACE):
            ws.disconnect(NAMESPACE)


@pytest.fixture(autouse=True)
def _reset_datastore():
    Datastore.reset()
    yield
    Datastore.reset()


@pytest.fixture
def point_payloads():
    return [
        {"latitude": -17.3895, "longitude": -66.1568, "name": "Plaza Principal", "street": "Av. Heroínas"},
        {"latitude": -17.390, "longitude": -66.160},
        {"latitude": -17.392, "longitude": -66.162, "name": "Mercado"},
    ]
