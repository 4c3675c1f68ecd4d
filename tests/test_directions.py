import pytest
from googlemaps import convert
from googlemaps.exceptions import ApiError, Timeout

from transit_lines.api import directions

START = {"latitude": -17.39, "longitude": -66.16}
END = {"lat": -17.40, "lng": -66.17}


class FakeMaps:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def directions(self, origin, destination, mode):
        self.calls.append((origin, destination, mode))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture(autouse=True)
def _clear_cache():
    directions._fetch_directions.cache_clear()
    yield
    directions._fetch_directions.cache_clear()


def use_client(monkeypatch, client):
    monkeypatch.setattr(directions, "_get_client", lambda: client)
    return client


def google_result():
    return [{
        "overview_polyline": {"points": convert.encode_polyline([(-17.39, -66.16), (-17.395, -66.165), (-17.40, -66.17)])},
        "legs": [{"distance": {"value": 1500}, "duration": {"value": 300}}],
    }]


def test_directions_result_is_decoded(monkeypatch):
    maps = use_client(monkeypatch, FakeMaps(google_result()))

    route = directions.get_route_between(START, END, "foot-walking")

    assert maps.calls == [((-17.39, -66.16), (-17.40, -66.17), "walking")]
    assert route["source"] == "directions"
    assert route["profile"] == "foot-walking"
    assert route["distance_m"] == 1500
    assert route["duration_s"] == 300
    assert len(route["coordinates"]) == 3
    assert route["coordinates"][-1]["latitude"] == pytest.approx(-17.40, abs=1e-5)


def test_results_are_cached_per_mode(monkeypatch):
    maps = use_client(monkeypatch, FakeMaps(google_result()))

    directions.get_route_between(START, END, "driving-car")
    directions.get_route_between(START, END, "driving-hgv")
    directions.get_route_between(START, END, "cycling-regular")

    assert [c[2] for c in maps.calls] == ["driving", "bicycling"]


@pytest.mark.parametrize("client", [
    None,
    FakeMaps(error=ApiError("OVER_QUERY_LIMIT")),
    FakeMaps(error=Timeout()),
    FakeMaps(result=[]),
])
def test_failures_fall_back_to_straight_line(monkeypatch, client):
    use_client(monkeypatch, client)

    route = directions.get_route_between(START, END)

    assert route["source"] == "straight_line"
    assert route["coordinates"] == [START, {"latitude": -17.40, "longitude": -66.17}]
    assert route["distance_m"] == pytest.approx(1537, rel=0.01)
    assert route["duration_s"] >= 60
    assert route["profile"] == "driving-car"


def test_invalid_endpoints_raise_value_error(monkeypatch):
    use_client(monkeypatch, FakeMaps(google_result()))

    with pytest.raises(ValueError):
        directions.get_route_between({"lat": "x"}, END)


def test_unknown_profile_defaults_to_driving():
    assert directions.profile_to_mode("hovercraft") == "driving"
    assert directions.profile_to_mode("FOOT-HIKING") == "walking"


def test_fallbacks_are_not_cached(monkeypatch):
    use_client(monkeypatch, None)
    assert directions.get_route_between(START, END)["source"] == "straight_line"

    maps = use_client(monkeypatch, FakeMaps(result=[]))
    assert directions.get_route_between(START, END)["source"] == "straight_line"

    maps.result = google_result()
    route = directions.get_route_between(START, END)

    assert route["source"] == "directions"
    assert len(maps.calls) == 2
