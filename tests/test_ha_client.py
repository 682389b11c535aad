"""Tests for the Home Assistant REST client and notification sink."""

from unittest.mock import Mock

import pytest
import requests

from core.aeris.exceptions import CommandError, HAConnectionError
from core.aeris.ha_client import HAClient, HANotificationSink


def response(status=200, payload=None):
    resp = Mock()
    resp.status_code = status
    resp.text = ""
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(response=resp)
    return resp


@pytest.fixture
def client():
    ha = HAClient("http://ha.local:8123/", "token")
    ha.session = Mock()
    return ha


def test_auth_header():
    ha = HAClient("http://ha.local:8123", "abc")
    assert ha.session.headers["Authorization"] == "Bearer abc"


def test_get_states(client):
    client.session.get.return_value = response(payload=[{"entity_id": "sensor.a", "state": "1"}])
    assert client.get_states() == [{"entity_id": "sensor.a", "state": "1"}]
    client.session.get.assert_called_once_with("http://ha.local:8123/api/states", timeout=5)


def test_unauthorized(client):
    client.session.get.return_value = response(status=401)
    with pytest.raises(HAConnectionError, match="401"):
        client.get_states()


def test_network_error(client):
    client.session.get.side_effect = requests.exceptions.ConnectionError("refused")
    with pytest.raises(HAConnectionError):
        client.get_states()


def test_invalid_payload(client):
    bad_json = response()
    bad_json.json.side_effect = ValueError("no json")
    client.session.get.return_value = bad_json
    with pytest.raises(HAConnectionError):
        client.get_states()

    client.session.get.return_value = response(payload={"message": "not a list"})
    with pytest.raises(HAConnectionError):
        client.get_states()


def test_set_temperature(client):
    client.session.post.return_value = response()
    client.set_temperature("climate.bath", 22.5)
    client.session.post.assert_called_once_with(
        "http://ha.local:8123/api/services/climate/set_temperature",
        json={"entity_id": "climate.bath", "temperature": 22.5},
        timeout=5,
    )


def test_set_hvac_mode_validates_mode(client):
    with pytest.raises(ValueError):
        client.set_hvac_mode("climate.bath", "cool")
    client.session.post.assert_not_called()


def test_service_failure_raises_command_error(client):
    client.session.post.return_value = response(status=500)
    with pytest.raises(CommandError):
        client.set_hvac_mode("climate.bath", "heat")


def test_notification_sink_payload(client):
    client.session.post.return_value = response()
    sink = HANotificationSink(client, "mobile_app_phone")

    sink.notify("Bathroom", "⏰ Time's up", "bath@t", [200, 100, 200], True)
    _, kwargs = client.session.post.call_args
    assert kwargs["json"] == {
        "title": "Bathroom",
        "message": "⏰ Time's up",
        "data": {
            "tag": "bath@t",
            "vibrationPattern": "200,100,200",
            "renotify": True,
            "requireInteraction": True,
        },
    }

    sink.notify("Bathroom", "🪟 5 min remaining", "bath@t", [], False)
    _, kwargs = client.session.post.call_args
    assert kwargs["json"]["data"] == {"tag": "bath@t", "silent": True}
    assert client.session.post.call_args[0][0].endswith("/api/services/notify/mobile_app_phone")
