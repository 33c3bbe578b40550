"""Integration tests for the Hamlet economy REST API."""

import pytest
from fastapi.testclient import TestClient

from hamlet.api.app import create_app


@pytest.fixture
def client():
    app = create_app()
    return TestClient(app)


def _create_session(client, **config):
    params = {"map_size": 8, "settlement_count": 4, "ticks_to_run": 5, "random_seed": 42}
    params.update(config)
    resp = client.post("/api/simulation/sessions", json={"config": params})
    assert resp.status_code == 200
    return resp.json()["id"]


class TestHealthCheck:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestCorsOrigins:
    def test_origins_from_environment(self, monkeypatch):
        monkeypatch.setenv("HAMLET_CORS_ORIGINS", "http://a.test, http://b.test")
        client = TestClient(create_app())
        allowed = client.get("/api/health", headers={"Origin": "http://b.test"})
        assert allowed.headers["access-control-allow-origin"] == "http://b.test"
        denied = client.get("/api/health", headers={"Origin": "http://c.test"})
        assert "access-control-allow-origin" not in denied.headers


class TestSessionLifecycle:
    def test_create_session_defaults(self, client):
        resp = client.post("/api/simulation/sessions", json={})
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "created"
        assert data["current_tick"] == 0
        assert data["settlement_count"] == 8
        assert data["total_population"] == 80
        assert data["latest_metrics"] is None

    def test_create_session_with_config(self, client):
        resp = client.post("/api/simulation/sessions", json={
            "config": {"settlement_count": 3, "ticks_to_run": 10, "random_seed": 1},
            "name": "tiny",
        })
        data = resp.json()
        assert data["name"] == "tiny"
        assert data["settlement_count"] == 3
        assert data["max_ticks"] == 10
        assert data["config"]["economy"]["building_wood_cost"] == 10.0

    def test_create_from_preset(self, client):
        resp = client.post("/api/simulation/sessions", json={"preset": "famine"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "famine"
        assert data["config"]["economy"]["food_consumption_per_capita"] == 0.8

    def test_unknown_preset(self, client):
        resp = client.post("/api/simulation/sessions", json={"preset": "utopia"})
        assert resp.status_code == 404

    def test_list_and_get(self, client):
        sid = _create_session(client)
        listed = client.get("/api/simulation/sessions").json()
        assert [s["id"] for s in listed] == [sid]
        resp = client.get(f"/api/simulation/sessions/{sid}")
        assert resp.status_code == 200
        assert resp.json()["id"] == sid

    def test_get_missing(self, client):
        assert client.get("/api/simulation/sessions/nope").status_code == 404

    def test_delete(self, client):
        sid = _create_session(client)
        resp = client.delete(f"/api/simulation/sessions/{sid}")
        assert resp.json() == {"deleted": True}
        assert client.get(f"/api/simulation/sessions/{sid}").status_code == 404
        assert client.delete(f"/api/simulation/sessions/{sid}").status_code == 404


class TestStepping:
    def test_step(self, client):
        sid = _create_session(client)
        resp = client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 2})
        data = resp.json()
        assert data["status"] == "running"
        assert data["current_tick"] == 2
        assert data["current_time"] == 2.0
        assert data["latest_metrics"]["tick"] == 1

    def test_step_stops_at_limit(self, client):
        sid = _create_session(client)
        data = client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 50}).json()
        assert data["current_tick"] == 5
        assert data["status"] == "completed"

    def test_step_validation(self, client):
        sid = _create_session(client)
        resp = client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 0})
        assert resp.status_code == 422

    def test_step_missing(self, client):
        resp = client.post("/api/simulation/sessions/nope/step", json={"n": 1})
        assert resp.status_code == 404


class TestSettlements:
    def test_list(self, client):
        sid = _create_session(client)
        client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 1})
        data = client.get(f"/api/settlements/{sid}").json()
        assert len(data) == 4
        first = data[0]
        assert first["id"] == "settlement_0"
        assert set(first["supply_demand_status"]) == {"food", "wood", "ore"}
        assert first["buildings"] >= 1

    def test_detail(self, client):
        sid = _create_session(client)
        data = client.get(f"/api/settlements/{sid}/settlement_1").json()
        assert data["id"] == "settlement_1"
        assert data["economy"]["stock"]["capacity"] == 120
        assert data["population_stats"]["current_population"] == 10
        assert data["building_stats"]["cost"] == {"wood": 10.0, "ore": 5.0}

    def test_unknown_settlement(self, client):
        sid = _create_session(client)
        assert client.get(f"/api/settlements/{sid}/ghost").status_code == 404

    def test_suppliers_default_distance(self, client):
        sid = _create_session(client)
        client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 1})
        resp = client.get(f"/api/settlements/{sid}/settlement_0/suppliers",
                          params={"resource": "wood"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["resource"] == "wood"
        assert data["max_distance"] == 10.0
        assert isinstance(data["suppliers"], list)

    def test_suppliers_bad_resource(self, client):
        sid = _create_session(client)
        resp = client.get(f"/api/settlements/{sid}/settlement_0/suppliers",
                          params={"resource": "gold"})
        assert resp.status_code == 422

    def test_missing_session(self, client):
        assert client.get("/api/settlements/nope").status_code == 404


class TestEconomy:
    def test_balance(self, client):
        sid = _create_session(client)
        client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 1})
        data = client.get(f"/api/economy/{sid}/balance/food").json()
        assert data["resource"] == "food"
        total = sum(len(data[k]) for k in ("surplus", "balanced", "shortage", "critical"))
        assert total == 4

    def test_balance_bad_resource(self, client):
        sid = _create_session(client)
        assert client.get(f"/api/economy/{sid}/balance/gold").status_code == 422

    def test_imbalanced(self, client):
        sid = _create_session(client)
        client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 1})
        data = client.get(f"/api/economy/{sid}/imbalanced").json()
        assert set(data) == {"shortage", "surplus", "critical", "by_resource"}
        assert set(data["by_resource"]) == {"food", "wood", "ore"}


class TestConfig:
    def test_get(self, client):
        sid = _create_session(client)
        data = client.get(f"/api/config/{sid}").json()
        assert data["config"]["building_wood_cost"] == 10.0
        assert data["stats"]["overall_health"] == "good"

    def test_patch_valid(self, client):
        sid = _create_session(client)
        resp = client.patch(f"/api/config/{sid}",
                            json={"changes": {"building_ore_cost": 4.0}})
        data = resp.json()
        assert data["is_valid"] is True
        assert data["config"]["building_ore_cost"] == 4.0
        detail = client.get(f"/api/settlements/{sid}/settlement_0").json()
        assert detail["building_stats"]["cost"]["ore"] == 4.0

    def test_patch_clamps_out_of_range(self, client):
        sid = _create_session(client)
        data = client.patch(f"/api/config/{sid}",
                            json={"changes": {"building_wood_cost": 500}}).json()
        assert data["is_valid"] is False
        assert data["errors"][0]["field"] == "building_wood_cost"
        assert data["config"]["building_wood_cost"] == 100

    def test_patch_unknown_field(self, client):
        sid = _create_session(client)
        data = client.patch(f"/api/config/{sid}",
                            json={"changes": {"gold_rate": 1.0}}).json()
        assert data["is_valid"] is False
        assert [e["field"] for e in data["errors"]] == ["gold_rate"]

    def test_reset(self, client):
        sid = _create_session(client)
        client.patch(f"/api/config/{sid}", json={"changes": {"building_ore_cost": 4.0}})
        data = client.post(f"/api/config/{sid}/reset").json()
        assert data["config"]["building_ore_cost"] == 5.0

    def test_ranges(self, client):
        sid = _create_session(client)
        data = client.get(f"/api/config/{sid}/ranges").json()
        wood = data["building_wood_cost"]
        assert wood["min"] == 1
        assert wood["max"] == 100
        assert wood["current"] == 10.0
        assert wood["description"]

    def test_missing_session(self, client):
        assert client.get("/api/config/nope").status_code == 404


class TestErrors:
    def _corrupt_and_step(self, client, sid):
        session = client.app.state.session_manager.get_session(sid)
        session.simulation.settlements[0].population = -7
        client.post(f"/api/simulation/sessions/{sid}/step", json={"n": 1})

    def test_empty_log(self, client):
        sid = _create_session(client)
        assert client.get(f"/api/errors/{sid}").json() == []
        stats = client.get(f"/api/errors/{sid}/statistics").json()
        assert stats["total_errors"] == 0

    def test_records_after_corruption(self, client):
        sid = _create_session(client)
        self._corrupt_and_step(client, sid)
        records = client.get(f"/api/errors/{sid}").json()
        assert records
        assert records[0]["settlement_id"] == "settlement_0"
        stats = client.get(f"/api/errors/{sid}/statistics").json()
        assert stats["total_errors"] == len(records)
        assert stats["errors_by_settlement"]["settlement_0"] == len(records)

    def test_per_settlement(self, client):
        sid = _create_session(client)
        self._corrupt_and_step(client, sid)
        assert client.get(f"/api/errors/{sid}/settlements/settlement_0").json()
        assert client.get(f"/api/errors/{sid}/settlements/settlement_1").json() == []

    def test_clear(self, client):
        sid = _create_session(client)
        self._corrupt_and_step(client, sid)
        assert client.delete(f"/api/errors/{sid}").json() == {"cleared": True}
        assert client.get(f"/api/errors/{sid}").json() == []

    def test_missing_session(self, client):
        assert client.get("/api/errors/nope/statistics").status_code == 404
