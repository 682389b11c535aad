"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from backend import api
from backend.app import app
from core.aeris.comfort_service import ComfortMonitorService
from core.aeris.notifications import LogNotificationSink
from core.aeris.settings import default_settings
from core.aeris.snapshot import DemoDataGenerator
from core.aeris.state_store import StateStore


@pytest.fixture
def service(monkeypatch):
    settings = default_settings()
    settings.get_room("living").sensors.climate = "climate.living"
    monitor = ComfortMonitorService(
        settings,
        notification_sink=LogNotificationSink(),
        state_store=StateStore(None),
        demo_generator=DemoDataGenerator(seed=3),
    )
    monkeypatch.setattr(api, "service", monitor)
    return monitor


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["app"] == "Aeris"


def test_service_not_ready(client, monkeypatch):
    monkeypatch.setattr(api, "service", None)
    assert client.get("/api/rooms").status_code == 503


def test_status_reports_demo_mode(client, service):
    data = client.get("/api/status").json()
    assert data["connection_status"] == "demo"
    assert data["is_demo"] is True
    assert data["command_errors"] == []
    assert data["rooms"] == 8


def test_rooms(client, service):
    data = client.get("/api/rooms").json()
    assert data["is_demo"] is True
    assert len(data["rooms"]) == 8
    living = next(r for r in data["rooms"] if r["id"] == "living")
    assert 0 <= living["score"] <= 100
    assert living["score_tier"] in ("good", "fair", "poor")
    assert "total_target_minutes" in living["ventilation"]


def test_single_room(client, service):
    response = client.get("/api/rooms/bath")
    assert response.status_code == 200
    assert response.json()["name"] == "Bathroom"
    assert client.get("/api/rooms/attic").status_code == 404


def test_summary(client, service):
    data = client.get("/api/summary").json()
    assert data["open_windows"] == 0
    assert isinstance(data["average_temperature"], float)
    assert isinstance(data["rooms_needing_attention"], list)


def test_refresh(client, service):
    response = client.post("/api/refresh")
    assert response.status_code == 200
    assert response.json()["connection_status"] == "demo"


class TestThermostatCommands:
    def test_set_temperature(self, client, service):
        response = client.post("/api/rooms/living/set_temperature", json={"temperature": 21.5})
        assert response.status_code == 200
        assert response.json()["status"] == "accepted"
        room = client.get("/api/rooms/living").json()
        assert room["target_temperature"] == 21.5

    def test_temperature_out_of_range(self, client, service):
        response = client.post("/api/rooms/living/set_temperature", json={"temperature": 50})
        assert response.status_code == 422

    def test_room_without_thermostat(self, client, service):
        response = client.post("/api/rooms/kitchen/set_temperature", json={"temperature": 21})
        assert response.status_code == 400

    def test_unknown_room(self, client, service):
        response = client.post("/api/rooms/attic/set_mode", json={"mode": "heat"})
        assert response.status_code == 404

    def test_set_mode(self, client, service):
        assert client.post("/api/rooms/living/set_mode", json={"mode": "off"}).status_code == 200
        assert client.post("/api/rooms/living/set_mode", json={"mode": "cool"}).status_code == 400


class TestLimits:
    def test_get_limits(self, client, service):
        data = client.get("/api/limits").json()
        assert data["categories"]["sleeping"]["temp_max"] == 19.0
        assert data["night"]["start_hour"] == 23

    def test_update_limits(self, client, service):
        body = {"temp_min": 20.5, "temp_max": 23.5, "hum_min": 40, "hum_max": 55}
        response = client.put("/api/limits/living", json=body)
        assert response.status_code == 200
        assert response.json()["limits"]["label"] == "Living"
        assert service.profile.get("living").hum_max == 55

    def test_inconsistent_limits_rejected(self, client, service):
        body = {"temp_min": 24, "temp_max": 20, "hum_min": 40, "hum_max": 60}
        assert client.put("/api/limits/living", json=body).status_code == 400

    def test_unknown_category(self, client, service):
        body = {"temp_min": 18, "temp_max": 20, "hum_min": 40, "hum_max": 60}
        assert client.put("/api/limits/garage", json=body).status_code == 404


def test_learning_and_sessions(client, service):
    assert client.get("/api/learning").json() == {"rooms": {}}
    assert client.get("/api/sessions").json() == {"sessions": []}
