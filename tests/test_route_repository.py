import threading

import pytest
from google.api_core.exceptions import PermissionDenied, ServiceUnavailable

from transit_lines.api.datastore import Datastore
from transit_lines.api.default_routes import get_default_routes
from transit_lines.api.geo import normalize_path
from transit_lines.api.models import Point, Route, reindex


def make_route(n=2, **kwargs):
    points = reindex(Point(-17.39 - i * 0.01, -66.16 - i * 0.01, name=f"Stop {i}") for i in range(n))
    kwargs.setdefault("name", "Linea 1")
    return Route(points=points, **kwargs)


def test_create_returns_new_id_and_writes_denormalized_fields(repository, routes_collection):
    result = repository.save(make_route(3), "admin-1")

    assert result.success
    stored = routes_collection.docs[result.route_id]
    assert stored["name"] == "Linea 1"
    assert stored["color"] == "#FF5722"
    assert stored["totalPoints"] == 3
    assert stored["public"] is True
    assert stored["createdBy"] == stored["updatedBy"] == "admin-1"
    assert stored["createdAt"] is not None and stored["updatedAt"] is not None
    assert stored["coordinates"][0] == {"lat": -17.39, "lng": -66.16}
    assert stored["points"][0] == {
        "latitude": -17.39, "longitude": -66.16, "street": "", "name": "Stop 0", "coordinates": [-66.16, -17.39],
    }


def test_saved_geometry_round_trips_through_normalizer(repository, routes_collection):
    route = make_route(4)

    result = repository.save(route, "admin-1")

    stored = routes_collection.docs[result.route_id]
    assert normalize_path(stored["coordinates"]) == [
        {"latitude": p.latitude, "longitude": p.longitude} for p in route.points
    ]
    assert repository.get(result.route_id).points == route.points


@pytest.mark.parametrize("route, actor", [
    (make_route(1), "admin-1"),
    (make_route(0), "admin-1"),
    (make_route(2, name="   "), "admin-1"),
    (make_route(2, color="blue"), "admin-1"),
    (make_route(2), None),
    (get_default_routes()[0], "admin-1"),
])
def test_invalid_saves_make_no_remote_calls(repository, routes_collection, route, actor):
    result = repository.save(route, actor)

    assert not result.success
    assert result.kind == "validation"
    assert routes_collection.calls == []


def test_single_point_message_is_actionable(repository):
    result = repository.save(make_route(1), "admin-1")
    assert "at least 2 points" in result.error


def test_update_keeps_creation_fields(repository, routes_collection):
    created = repository.save(make_route(2), "admin-1")
    first = dict(routes_collection.docs[created.route_id])

    route = repository.get(created.route_id)
    route.name = "Linea 1 (nueva)"
    route.points = reindex(route.points + [Point(-17.5, -66.3, name="Fin")])
    result = repository.save(route, "editor-2")

    stored = routes_collection.docs[created.route_id]
    assert result.success and result.route_id == created.route_id
    assert stored["createdBy"] == "admin-1"
    assert stored["createdAt"] == first["createdAt"]
    assert stored["updatedBy"] == "editor-2"
    assert stored["updatedAt"] > first["updatedAt"]
    assert stored["totalPoints"] == 3


def test_update_of_missing_route_is_not_found(repository):
    result = repository.save(make_route(2, id="gone"), "admin-1")

    assert not result.success
    assert result.kind == "not_found"


def test_remote_failures_become_results(repository, routes_collection):
    routes_collection.fail_next = PermissionDenied("Missing or insufficient permissions.")
    denied = repository.save(make_route(2), "admin-1")

    routes_collection.fail_next = ServiceUnavailable("network unavailable")
    offline = repository.save(make_route(2), "admin-1")

    assert (denied.success, denied.kind) == (False, "remote")
    assert "Permission denied" in denied.error
    assert (offline.success, offline.kind) == (False, "remote")
    assert "network unavailable" in offline.error
    assert routes_collection.docs == {}


def test_concurrent_save_for_same_route_is_busy(repository, routes_collection):
    created = repository.save(make_route(2), "admin-1")
    route = repository.get(created.route_id)
    entered = threading.Event()
    release = threading.Event()

    def hold(op, target):
        entered.set()
        release.wait(5)

    routes_collection.on_write = hold
    results = {}
    worker = threading.Thread(target=lambda: results.update(first=repository.save(route, "admin-1")))
    worker.start()
    assert entered.wait(5)
    routes_collection.on_write = None

    second = repository.save(route, "admin-1")
    release.set()
    worker.join(5)

    assert second.kind == "busy"
    assert results["first"].success


def test_delete_removes_document(repository, routes_collection):
    created = repository.save(make_route(2), "admin-1")

    result = repository.delete(created.route_id, "admin-1")

    assert result.success
    assert created.route_id not in routes_collection.docs
    assert repository.get(created.route_id) is None


def test_delete_refuses_builtin_and_unknown(repository, routes_collection):
    builtin = repository.delete(get_default_routes()[0].id, "admin-1")
    missing = repository.delete("nope", "admin-1")
    anonymous = repository.delete("nope", None)

    assert builtin.kind == "forbidden"
    assert missing.kind == "not_found"
    assert anonymous.kind == "validation"
    assert routes_collection.writes() == []


def test_list_routes_newest_first_and_public_filter(repository):
    first = repository.save(make_route(2, name="Old", public=False), "admin-1")
    second = repository.save(make_route(2, name="New"), "admin-1")

    assert [r.id for r in repository.list_routes()] == [second.route_id, first.route_id]
    assert [r.name for r in repository.list_routes(public_only=True)] == ["New"]


def test_legacy_documents_are_normalized_on_read(repository, routes_collection):
    routes_collection.seed("legacy-1", {
        "title": "Linea 1",
        "color": "#ff0000",
        "public": True,
        "createdAt": "2023-01-01T12:00:00Z",
        "coordinates": [{"latitude": -17.3933, "longitude": -66.1568}, {"latitude": -17.3940, "longitude": -66.1575}],
        "points": [
            {"name": "Parada A", "street": "C/ Principal", "latitude": -17.3933, "longitude": -66.1568},
            {"name": "Parada B", "street": "Av Secundaria", "latitude": -17.3940, "longitude": -66.1575},
        ],
    })

    route = repository.get("legacy-1")

    assert route.name == "Linea 1"
    assert [p.street for p in route.points] == ["C/ Principal", "Av Secundaria"]


def test_watch_routes_until_closed(repository, routes_collection):
    updates = []

    subscription = repository.watch_routes(updates.append)
    repository.save(make_route(2), "admin-1")
    subscription.close()
    repository.save(make_route(2, name="After close"), "admin-1")

    assert [len(batch) for batch in updates] == [0, 1]
    (_, watch), = routes_collection.watches
    assert watch.unsubscribed
    subscription.close()


def test_watch_callback_errors_go_to_on_error(repository):
    errors = []

    def failing(routes):
        raise RuntimeError("ui gone")

    repository.watch_routes(failing, errors.append)

    assert len(errors) == 1


def test_make_all_public_and_export(repository, routes_collection):
    repository.save(make_route(2, name="Private", public=False), "admin-1")
    repository.save(make_route(2, name="Public"), "admin-1")

    assert repository.make_all_public("ops") == 1
    assert all(doc["public"] for doc in routes_collection.docs.values())

    exported = repository.export_routes()
    assert set(exported) == set(routes_collection.docs)


def test_datastore_is_initialized_once(fake_db):
    with pytest.raises(RuntimeError):
        Datastore.get()

    handle = Datastore.initialize(fake_db)

    assert Datastore.get() is handle
    assert Datastore.initialize() is handle
    with pytest.raises(RuntimeError):
        Datastore.initialize(object())


def test_unexpected_client_errors_become_results(repository, routes_collection):
    created = repository.save(make_route(2), "admin-1")
    route = repository.get(created.route_id)

    routes_collection.fail_next = ValueError("Cannot convert to a Firestore Value")
    failed_save = repository.save(route, "admin-1")
    routes_collection.fail_next = ConnectionResetError("connection reset")
    failed_delete = repository.delete(created.route_id, "admin-1")

    assert (failed_save.success, failed_save.kind) == (False, "remote")
    assert "Cannot convert" in failed_save.error
    assert (failed_delete.success, failed_delete.kind) == (False, "remote")
    # the in-flight guard was released
    assert repository.save(route, "admin-1").success
