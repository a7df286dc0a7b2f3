import pytest
from fastapi.testclient import TestClient

from geotrail.api.app import app, get_resolver
from geotrail.geocoding.errors import QueueFullError
from geotrail.models.geocode import GeocodeSource


@pytest.fixture
def resolver(make_resolver, amap, osm):
    amap.results.update({"北京": (116.407387, 39.904179), "Paris": (2.35, 48.85)})
    osm.results["Rome"] = (12.5, 41.9)
    return make_resolver([amap, osm])


@pytest.fixture
def client(resolver):
    app.dependency_overrides[get_resolver] = lambda: resolver
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_root(client):
    assert client.get("/").status_code == 200


@pytest.mark.parametrize("path", ["/geocode", "/geocode?city=", "/amap-geocode?city=%20%20"])
def test_missing_city_is_bad_request(client, path):
    response = client.get(path)
    assert response.status_code == 400
    assert response.json() == {"error": "City parameter is required"}


def test_geocode_returns_lng_lat_location(client):
    response = client.get("/geocode", params={"city": "北京"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "1"
    assert body["source"] == "amap"
    assert body["info"] == "OK (AMap)"
    assert body["geocodes"][0]["location"] == "116.407387,39.904179"
    assert body["geocodes"][0]["city"] == "北京"


def test_geocode_second_call_is_cached(client, amap):
    client.get("/geocode", params={"city": "Paris"})
    body = client.get("/geocode", params={"city": "Paris"}).json()
    assert body["source"] == "cache"
    assert amap.calls == ["Paris"]


def test_geocode_refresh_calls_provider_again(client, amap):
    client.get("/geocode", params={"city": "Paris"})
    body = client.get("/geocode", params={"city": "Paris", "refresh": "true"}).json()
    assert body["source"] == "amap"
    assert amap.calls == ["Paris", "Paris"]


def test_geocode_unknown_city_uses_default(client):
    body = client.get("/geocode", params={"city": "Nonexistent City XYZ"}).json()
    assert body["source"] == "default"
    assert body["info"] == "Using default coordinates"
    assert body["geocodes"][0]["location"] == "116.397428,39.90923"


def test_full_queue_is_rate_limited(client, resolver, monkeypatch):
    async def full(*args, **kwargs):
        raise QueueFullError("amap", 100, 50)

    monkeypatch.setattr(resolver, "resolve", full)
    response = client.get("/geocode", params={"city": "Paris"})

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "50"
    body = response.json()
    assert body["status"] == "0"
    assert body["queueLength"] == 100
    assert body["retryAfter"] == 50


def test_unexpected_failure_is_server_error(client, resolver, monkeypatch):
    async def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(resolver, "resolve", broken)
    response = client.get("/geocode", params={"city": "Paris"})

    assert response.status_code == 500
    assert response.json()["info"] == "All geocoding methods failed"


def test_amap_geocode_uses_amap_only(client, osm):
    response = client.get("/amap-geocode", params={"city": "Rome"})

    assert response.status_code == 500
    assert response.json()["info"] == "AMap geocoding error"
    assert osm.calls == []


def test_amap_geocode_success(client):
    body = client.get("/amap-geocode", params={"city": "Paris", "priority": "high"}).json()
    assert body["source"] == "amap"
    assert body["geocodes"][0]["location"] == "2.35,48.85"


def test_amap_geocode_without_key_is_server_error(make_resolver, osm):
    app.dependency_overrides[get_resolver] = lambda: make_resolver([osm])
    try:
        with TestClient(app) as client:
            response = client.get("/amap-geocode", params={"city": "北京"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert "not configured" in response.json()["error"]


def test_batch_geocode_orders_points_and_frames_map(client):
    points = [
        {"city": "Rome", "date": "2025-03-09", "transport": ["train"]},
        {"city": "Paris", "date": "2025-03-01", "transport": ["plane"], "customTransport": "tgv"},
        {"city": "Rome", "date": "2025-03-05", "transport": ["car"]},
    ]

    response = client.post("/geocode/batch", json=points)

    assert response.status_code == 200
    body = response.json()
    assert [p["date"] for p in body["points"]] == ["2025-03-01", "2025-03-05", "2025-03-09"]
    assert body["points"][0]["coordinates"] == {"lat": 48.85, "lng": 2.35}
    assert body["points"][0]["customTransport"] == "tgv"
    assert body["points"][1]["source"] == GeocodeSource.OPENSTREETMAP.value
    assert body["bounds"]["north"] == pytest.approx(48.85 + 5)
    assert body["center"]["lng"] == pytest.approx((2.35 + 12.5 + 12.5) / 3)


def test_batch_geocode_validates_points(client):
    response = client.post("/geocode/batch", json=[{"city": "Rome"}])
    assert response.status_code == 422


def test_cache_stats_sweep_and_delete(client, resolver, clock):
    client.get("/geocode", params={"city": "Paris"})
    stats = client.get("/cache/stats").json()
    assert stats["persistent"]["total"] == 1
    assert stats["memory_entries"] == 1
    assert stats["queues"] == {"amap": 0, "openstreetmap": 0}

    clock.advance(30 * 24 * 3600)
    response = client.post("/cache/sweep")
    assert response.json()["status"] == "processing"
    assert client.get("/cache/stats").json()["persistent"]["total"] == 0

    response = client.delete("/cache/Paris")
    assert response.status_code == 200
    assert client.get("/cache/stats").json()["memory_entries"] == 0


def test_delete_blank_city_is_bad_request(client):
    assert client.delete("/cache/%20").status_code == 400
