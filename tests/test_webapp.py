from pathlib import Path

import pytest

from civicmap.config import CivicMapConfig, ViewportConfig
from civicmap.loader import seed_store
from civicmap.storage import MemoryDocumentStore, SQLiteDocumentStore

SEED = [
    {
        "id": "issue-1",
        "location": {"lat": 12.972, "lng": 77.595},
        "category": "road_damage",
        "credibility": 0.8,
        "status": "open",
        "normalizedHeatScore": 0.6,
        "reports": [{"id": "r1", "summary": "Pothole", "addedAt": "2024-05-01T10:00:00Z"}],
    },
    {
        "id": "issue-2",
        "location": {"lat": 12.971, "lng": 77.594},
        "category": "water",
        "credibility": 0.2,
        "status": "open",
        "reports": [{"id": "r1", "summary": "Leak", "addedAt": "2024-05-01T10:00:00Z"}],
    },
]

VIEWPORT = {
    "center": {"lat": 12.9716, "lng": 77.5946},
    "bounds": {"north_east": {"lat": 12.9816, "lng": 77.6046}, "south_west": {"lat": 12.9616, "lng": 77.5846}},
    "zoom": 13,
}


def _client(store=None):
    pytest.importorskip("fastapi")
    from fastapi.testclient import TestClient

    from civicmap.webapp import create_app

    if store is None:
        store = MemoryDocumentStore()
        seed_store(store, SEED)
    config = CivicMapConfig(viewport=ViewportConfig(debounce_seconds=0, location_timeout_seconds=0))
    return TestClient(create_app(config, store=store))


def test_settle_fetches_and_view_renders_heatmap() -> None:
    client = _client()

    health = client.get("/api/health")
    assert health.status_code == 200
    assert health.json()["location_resolved"] is True

    settle = client.post("/api/viewport/settle", json=VIEWPORT)
    assert settle.status_code == 202
    assert settle.json()["working_set"] == 1

    view = client.get("/api/view").json()["view"]
    assert view["mode"] == "heatmap"
    assert view["report_count"] == 1
    assert view["heatmap"][0]["weight"] == pytest.approx(0.6)


def test_zooming_past_threshold_switches_to_markers() -> None:
    client = _client()
    client.post("/api/viewport/settle", json=VIEWPORT)

    client.post("/api/viewport/settle", json={**VIEWPORT, "zoom": 17})
    view = client.get("/api/view").json()["view"]

    assert view["mode"] == "markers"
    assert view["markers"][0]["issue_id"] == "issue-1"
    assert view["markers"][0]["icon"].startswith("data:image/svg+xml")


def test_manual_fetch_reports_skipped_cycle_when_nothing_is_new() -> None:
    client = _client()
    client.post("/api/viewport/settle", json=VIEWPORT)

    response = client.post("/api/fetch")

    assert response.status_code == 200
    assert response.json()["skipped"] is True


def test_category_selection_filters_view_and_rejects_unknown_values() -> None:
    client = _client()
    client.post("/api/viewport/settle", json=VIEWPORT)

    updated = client.put("/api/categories", json={"categories": ["water"]})
    assert updated.json() == {"categories": ["water"]}
    assert client.get("/api/view").json()["view"]["report_count"] == 0

    assert client.put("/api/categories", json={"categories": ["bogus"]}).status_code == 422


def test_location_fix_far_away_resets_session() -> None:
    client = _client()
    client.post("/api/viewport/settle", json=VIEWPORT)

    near = client.post("/api/location", json={"lat": 12.9716, "lng": 77.5946})
    assert near.json()["triggered"] is False

    far = client.post("/api/location", json={"lat": 12.9352, "lng": 77.6245})
    body = far.json()
    assert body["triggered"] is True
    assert body["generation"] == 1
    assert body["working_set"] == 0


def test_center_change_and_resize_are_accepted() -> None:
    client = _client()

    assert client.post("/api/viewport/center", json={"lat": 12.0, "lng": 77.0}).status_code == 200
    assert client.post("/api/viewport/resize", json=VIEWPORT).status_code == 202
    assert client.post("/api/location/unavailable", json={"reason": "denied"}).status_code == 200
    assert client.post("/api/viewport/settle", json={"center": {"lat": 100, "lng": 0}}).status_code == 422


def test_map_config_requires_api_key(monkeypatch) -> None:
    client = _client()

    monkeypatch.delenv("CIVICMAP_MAPS_API_KEY", raising=False)
    assert client.get("/api/map-config").status_code == 503

    monkeypatch.setenv("CIVICMAP_MAPS_API_KEY", "test-key")
    body = client.get("/api/map-config").json()
    assert body["api_key"] == "test-key"
    assert body["heatmap_zoom_threshold"] == 16
    assert body["categories"]["water"]["color"] == "#1E90FF"


def test_webapp_serves_sqlite_store(tmp_path: Path) -> None:
    store = SQLiteDocumentStore(tmp_path / "civicmap.db")
    seed_store(store, SEED)
    client = _client(store)

    client.post("/api/viewport/settle", json=VIEWPORT)

    assert client.get("/api/health").json()["working_set"] == 1
