"""
Simple Home Assistant API Client for Aeris

Minimal client for reading sensor snapshots, controlling thermostats and
sending notifications.
"""

import logging
from typing import Any

import requests

from .exceptions import CommandError, HAConnectionError

logger = logging.getLogger(__name__)

HVAC_MODES = ("heat", "off")


class HAClient:
    """Simple Home Assistant REST API client."""

    def __init__(self, base_url: str, token: str, timeout: float = 5):
        """Initialize HA client.

        Args:
            base_url: Home Assistant URL (e.g., "http://supervisor/core")
            token: Long-lived access token
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        # Create a session for connection pooling
        self.session = requests.Session()
        self.session.headers.update(self.headers)
        self.timeout = timeout

    def get_states(self) -> list[dict[str, Any]]:
        """Get the state of every entity in one request.

        Returns:
            List of entity dicts with 'entity_id', 'state', 'last_changed', 'attributes'

        Raises:
            HAConnectionError: If the request fails or the response is malformed
        """
        url = f"{self.base_url}/api/states"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            states = response.json()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            if status == 401:
                raise HAConnectionError("Home Assistant rejected the access token (401)") from e
            raise HAConnectionError(f"HTTP error {status} while fetching states: {e}") from e
        except requests.exceptions.RequestException as e:
            raise HAConnectionError(f"HA API request failed: {e}") from e
        except ValueError as e:
            raise HAConnectionError(f"Invalid JSON from Home Assistant: {e}") from e

        if not isinstance(states, list):
            raise HAConnectionError(f"Unexpected states payload: {type(states).__name__}")
        return states

    def _call_service(self, domain: str, service: str, data: dict[str, Any]) -> None:
        url = f"{self.base_url}/api/services/{domain}/{service}"
        logger.debug(f"Calling {url} with data: {data}")
        try:
            response = self.session.post(url, json=data, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise CommandError(f"{domain}.{service} failed: {e}") from e
        logger.debug(f"Response {response.status_code}: {response.text}")

    def set_temperature(self, entity_id: str, temperature: float) -> None:
        """Set target temperature for climate entity.

        Args:
            entity_id: Climate entity ID
            temperature: Target temperature in Celsius

        Raises:
            CommandError: If service call fails
        """
        self._call_service(
            "climate",
            "set_temperature",
            {"entity_id": entity_id, "temperature": temperature},
        )
        logger.info(f"Set {entity_id} to {temperature}°C")

    def set_hvac_mode(self, entity_id: str, mode: str) -> None:
        """Set HVAC mode for climate entity.

        Args:
            entity_id: Climate entity ID
            mode: "heat" or "off"

        Raises:
            ValueError: If the mode is not supported
            CommandError: If service call fails
        """
        if mode not in HVAC_MODES:
            raise ValueError(f"Unsupported HVAC mode: {mode}")

        self._call_service(
            "climate",
            "set_hvac_mode",
            {"entity_id": entity_id, "hvac_mode": mode},
        )
        logger.info(f"Set {entity_id} HVAC mode to {mode}")

    def send_notification(
        self, service: str, title: str, message: str, data: dict[str, Any] | None = None
    ) -> None:
        """Send a message through a notify service (e.g. a mobile app).

        Raises:
            CommandError: If service call fails
        """
        payload: dict[str, Any] = {"title": title, "message": message}
        if data:
            payload["data"] = data
        self._call_service("notify", service, payload)


class HANotificationSink:
    """Delivers notifications through a Home Assistant notify service."""

    def __init__(self, ha_client: HAClient, service: str):
        self.ha_client = ha_client
        self.service = service

    def notify(self, title, body, tag, vibration_pattern, require_reattention):
        data: dict[str, Any] = {"tag": tag}
        if vibration_pattern:
            data["vibrationPattern"] = ",".join(str(v) for v in vibration_pattern)
        if require_reattention:
            # Re-alert even though a notification with this tag is showing
            data["renotify"] = True
            data["requireInteraction"] = True
        else:
            data["silent"] = True
        self.ha_client.send_notification(self.service, title, body, data)
