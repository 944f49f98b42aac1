import inspect
from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from app import api
from app.main import create_app
from datastore.automation_store import AutomationStore, build_default_automation_store
from datastore.reading_store import ReadingStore, build_default_reading_store
from datastore.sensor_selection import SensorSelectionStore, build_default_selection_store
from models.boards import BoardType
from services.aggregator import Aggregator
from services.aligner import SeriesAligner
from services.dashboard import DashboardService, build_default_dashboard
from services.log_merger import LogMerger
from services.write_composer import WriteComposer
from settings import get_settings


@pytest.fixture
def services(tmp_path, monkeypatch) -> Iterator[Dict[str, object]]:
    store = ReadingStore(persistence_path=tmp_path / "readings.json")
    selection = SensorSelectionStore(persistence_path=tmp_path / "sensors.json")
    dashboards: Dict[str, DashboardService] = {}

    def build_test_dashboard(workers: int | None = None) -> DashboardService:
        dashboard = dashboards.get("default")
        if dashboard is None:
            dashboard = DashboardService(
                store=store,
                automation_store=AutomationStore(persistence_path=tmp_path / "automations.json"),
                aggregator=Aggregator(),
                merger=LogMerger(),
                composer=WriteComposer(store, workers=workers or 1),
                aligner=SeriesAligner(),
            )
            dashboards["default"] = dashboard
        return dashboard

    def cache_clear() -> None:
        while dashboards:
            _, dashboard = dashboards.popitem()
            dashboard.shutdown()

    build_test_dashboard.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_dashboard", build_test_dashboard)
    monkeypatch.setattr("app.api.build_default_dashboard", build_test_dashboard)
    monkeypatch.setattr("app.api.build_default_selection_store", lambda: selection)

    yield {"store": store, "selection": selection, "dashboard": build_test_dashboard}

    cache_clear()


@pytest.fixture
def api_client(services) -> Iterator[TestClient]:
    app = create_app()
    with TestClient(app) as client:
        yield client


def _seed(store: ReadingStore) -> None:
    store.append(BoardType.GSMB, {"temperature": 21.3, "timestamp": "2024-01-01T00:00:00Z"})
    store.append(BoardType.HPCB, {"fan1State": True, "timestamp": "2024-01-01T00:05:00Z"})


def test_lifespan_shuts_down_dashboard_and_clears_cache(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("READING_STORE_PATH", str(tmp_path / "readings.json"))
    monkeypatch.setenv("AUTOMATION_STORE_PATH", str(tmp_path / "automations.json"))
    caches = (get_settings, build_default_reading_store, build_default_automation_store, build_default_dashboard)
    for cache in caches:
        cache.cache_clear()

    app = create_app()
    try:
        with TestClient(app):
            dashboard_during = build_default_dashboard()
            assert dashboard_during.started is True
            assert dashboard_during.composer.executor._shutdown is False

        assert dashboard_during.started is False
        assert dashboard_during.composer.executor._shutdown is True
        assert build_default_dashboard() is not dashboard_during
    finally:
        build_default_dashboard().shutdown()
        for cache in caches:
            cache.cache_clear()


def test_health(api_client: TestClient) -> None:
    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_latest_state_defaults(api_client: TestClient) -> None:
    response = api_client.get("/state/latest")

    assert response.status_code == 200
    body = response.json()
    assert body["timestamp"] is None
    assert body["values"]["temperature"] == ""
    assert body["values"]["fan1State"] is False


def test_latest_state_after_readings(api_client: TestClient, services) -> None:
    _seed(services["store"])

    body = api_client.get("/state/latest").json()

    assert body["values"]["temperature"] == "21.3"
    assert body["values"]["fan1State"] is True
    assert body["timestamp"].startswith("2024-01-01T00:05:00")


def test_board_readings(api_client: TestClient, services) -> None:
    _seed(services["store"])

    response = api_client.get("/boards/gsmb/readings")

    assert response.status_code == 200
    [reading] = response.json()
    assert reading["board"] == "GSMB"
    assert reading["data"] == {"temperature": 21.3}

    assert api_client.get("/boards/XYZ/readings").status_code == 404


def test_write_requires_active_sensors(api_client: TestClient) -> None:
    response = api_client.post("/readings", json={"updates": {"temperature": 20}})

    assert response.status_code == 400
    assert "No active sensors" in response.json()["detail"]


def test_write_uses_saved_selection(api_client: TestClient, services) -> None:
    services["selection"].add("1", "Temperature")

    response = api_client.post("/readings", json={"updates": {"temperature": "22.5", "fan1State": True}})

    assert response.status_code == 200
    [result] = response.json()["results"]
    assert result["board"] == "GSMB"
    assert result["error"] is None
    assert result["document"]["temperature"] == 22.5
    assert services["store"].snapshot(BoardType.HPCB) == []
    assert api_client.get("/state/latest").json()["values"]["temperature"] == "22.5"


def test_logs_are_filtered_and_paginated(api_client: TestClient, services) -> None:
    _seed(services["store"])
    services["selection"].add("1", "Temperature")
    services["selection"].add("1", "Fan 1")

    body = api_client.get("/logs", params={"per_page": 1, "page": 2}).json()

    assert body["total"] == 2
    assert body["total_pages"] == 2
    assert [entry["action"] for entry in body["entries"]] == ["Reading of Fan 1 State: true"]
    assert body["entries"][0]["id"] == 2

    searched = api_client.get("/logs", params={"search": "temperature"}).json()
    assert [entry["id"] for entry in searched["entries"]] == [1]


def test_logs_without_sensors_are_empty(api_client: TestClient, services) -> None:
    _seed(services["store"])

    body = api_client.get("/logs").json()

    assert body["entries"] == []
    assert body["total"] == 0


def test_logs_export(api_client: TestClient, services) -> None:
    _seed(services["store"])

    response = api_client.get("/logs/export", params=[("sensors", "Temperature")])

    assert response.json() == [
        {"id": 1, "time": "2024-01-01T00:00:00Z", "action": "Reading of Temperature: 21.3"}
    ]


def test_series(api_client: TestClient, services) -> None:
    store = services["store"]
    store.append(BoardType.GSMB, {"temperature": 20, "timestamp": "2024-01-01T01:00:00Z"})
    store.append(BoardType.NSCB, {"waterLevel": 50, "timestamp": "2024-01-01T02:00:00Z"})

    body = api_client.get(
        "/series", params=[("sensors", "Temperature"), ("sensors", "Water Level"), ("sensors", "Fan 1")]
    ).json()

    assert len(body["timeline"]) == 2
    assert body["labels"] == ["Jan 01, 2024 01:00 AM", "Jan 01, 2024 02:00 AM"]
    assert [(item["sensor"], item["values"]) for item in body["series"]] == [
        ("Temperature", [20.0, 20.0]),
        ("Water Level", [None, 50.0]),
    ]


def test_automation_lifecycle(api_client: TestClient, services) -> None:
    services["selection"].add("1", "Light 2")
    payload = {"boardType": "HPCB", "name": "Lights", "action": "turnOnLight", "type": "time-length-based"}

    created = api_client.post("/automations", json=payload)
    assert created.status_code == 201
    automation_id = created.json()["id"]

    [listed] = api_client.get("/automations").json()
    assert listed["id"] == automation_id
    assert listed["boardType"] == "HPCB"
    assert listed["portNumber"] == 2

    toggled = api_client.patch(f"/automations/{automation_id}/enabled", json={"enabled": False})
    assert toggled.json()["enabled"] is False

    replaced = api_client.put(f"/automations/{automation_id}", json={**payload, "name": "Renamed"})
    assert replaced.json()["id"] == automation_id
    assert replaced.json()["name"] == "Renamed"

    assert api_client.delete(f"/automations/{automation_id}").status_code == 204
    assert api_client.delete(f"/automations/{automation_id}").status_code == 404
    assert api_client.patch("/automations/missing/enabled", json={"enabled": True}).status_code == 404


def test_clear_automations(api_client: TestClient) -> None:
    api_client.post("/automations", json={"boardType": "GSMB", "action": "readSensors"})

    assert api_client.delete("/automations").json() == {"removed": 1}
    assert api_client.get("/automations").json() == []


def test_sensor_selection_endpoints(api_client: TestClient) -> None:
    added = api_client.post("/instances/2/sensors", json={"sensor": "Fan 1"})
    assert added.status_code == 201
    assert added.json() == {"instance": "2", "sensors": ["Fan 1"]}

    conflict = api_client.post("/instances/2/sensors", json={"sensor": "Light 1"})
    assert conflict.status_code == 400

    assert api_client.get("/instances/2/sensors").json()["sensors"] == ["Fan 1"]
    assert api_client.delete("/instances/2/sensors/Fan%201").json()["sensors"] == []
    assert api_client.delete("/instances/2/sensors/Fan%201").status_code == 404
    assert api_client.delete("/instances/2/sensors").json() == {"instance": "2", "sensors": []}


def test_non_finite_write_is_stored_as_zero(api_client: TestClient) -> None:
    response = api_client.post(
        "/readings", json={"updates": {"temperature": "inf"}, "active_sensors": ["Temperature"]}
    )

    assert response.status_code == 200
    assert response.json()["results"][0]["document"]["temperature"] == 0.0
    assert api_client.get("/state/latest").json()["values"]["temperature"] == "0.0"


def test_non_finite_automation_numbers_use_defaults(api_client: TestClient) -> None:
    response = api_client.post(
        "/automations",
        json={"boardType": "GSMB", "action": "water", "type": "time-length-based", "time_length": "inf"},
    )

    assert response.status_code == 201
    [listed] = api_client.get("/automations").json()
    assert listed["timeLength"] == 0


def test_automations_are_listed_from_dashboard_state(api_client: TestClient, services) -> None:
    dashboard = services["dashboard"]()
    dashboard.automation_store.create({"boardType": "NSCB", "type": "volume-based", "action": "dose"})

    listed = api_client.get("/automations").json()

    assert [item["id"] for item in listed] == [item.id for item in dashboard.state.automations]
    assert listed[0]["boardType"] == "NSCB"


def test_blocking_routes_run_in_the_threadpool() -> None:
    blocking = (
        api.create_reading,
        api.create_automation,
        api.replace_automation,
        api.toggle_automation,
        api.delete_automation,
        api.clear_automations,
        api.add_instance_sensor,
        api.remove_instance_sensor,
        api.clear_instance_sensors,
    )

    assert not any(inspect.iscoroutinefunction(route) for route in blocking)
