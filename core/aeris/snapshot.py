"""
Sensor snapshot mapping.

Applies a Home Assistant state dump to the cached room readings, generates
synthetic demo data when no Home Assistant connection is configured, and
builds the house-level summary.
"""

import logging
import math
from datetime import datetime
from typing import Any, Optional

import numpy as np

from .models import AnalysisResult, OutsideReading, RoomReading
from .settings import AppSettings, RoomSettings

logger = logging.getLogger(__name__)

WINDOW_OPEN_STATES = ("on", "open", "true")
UNAVAILABLE_STATES = ("unknown", "unavailable", "none", "")
ATTENTION_SCORE = 80


def initial_room(room: RoomSettings) -> RoomReading:
    """Reading shown before the first successful poll."""
    return RoomReading(
        id=room.id,
        name=room.name,
        category=room.category,
        temperature=room.initial_temp,
        humidity=room.initial_humidity,
        has_co2=room.has_co2,
        has_window=room.has_window,
        has_ventilation_assist=room.has_ventilation_assist,
        co2=room.initial_co2 if room.has_co2 else None,
    )


def initial_state(settings: AppSettings) -> tuple[dict[str, RoomReading], OutsideReading]:
    rooms = {room.id: initial_room(room) for room in settings.rooms}
    outside = OutsideReading(
        temperature=settings.outside.initial_temp,
        humidity=settings.outside.initial_humidity,
    )
    return rooms, outside


def _to_float(value: Any) -> Optional[float]:
    """Numeric sensor value, or None for anything that is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().lower() in UNAVAILABLE_STATES:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _numeric(states: dict[str, dict], entity_id: Optional[str], previous):
    """New numeric value for a field, keeping the previous one when unusable."""
    if not entity_id or entity_id not in states:
        return previous
    value = _to_float(states[entity_id].get("state"))
    if value is None:
        logger.debug(f"Ignoring non-numeric state of {entity_id}")
        return previous
    return value


def apply_snapshot(
    rooms: dict[str, RoomReading],
    outside: OutsideReading,
    states: list[dict[str, Any]],
    settings: AppSettings,
) -> tuple[dict[str, RoomReading], OutsideReading]:
    """Build new readings from a Home Assistant state dump.

    Missing or non-numeric values keep the previous value, and so does an
    unavailable window sensor. Rooms without an entity mapping are returned
    unchanged.
    """
    by_id = {s["entity_id"]: s for s in states if isinstance(s, dict) and "entity_id" in s}

    new_outside = OutsideReading(
        temperature=_numeric(by_id, settings.outside.temp, outside.temperature),
        humidity=_numeric(by_id, settings.outside.humidity, outside.humidity),
    )

    new_rooms = {}
    for room_id, room in rooms.items():
        room_settings = settings.get_room(room_id)
        if room_settings is None or room_settings.sensors.is_empty:
            new_rooms[room_id] = room
            continue

        sensors = room_settings.sensors
        changes: dict[str, Any] = {
            "temperature": _numeric(by_id, sensors.temp, room.temperature),
            "humidity": _numeric(by_id, sensors.humidity, room.humidity),
        }
        if sensors.co2:
            changes["co2"] = _numeric(by_id, sensors.co2, room.co2)

        window = by_id.get(sensors.window) if sensors.window else None
        window_state = str(window.get("state", "")).strip().lower() if window is not None else None
        if window_state in UNAVAILABLE_STATES:
            logger.debug(f"Ignoring unavailable state of {sensors.window}")
        elif window_state is not None:
            is_open = window_state in WINDOW_OPEN_STATES
            changes["window_open"] = is_open
            changes["window_changed_at"] = (
                _parse_timestamp(window.get("last_changed")) if is_open else None
            )

        climate = by_id.get(sensors.climate) if sensors.climate else None
        if climate is not None:
            target = _to_float((climate.get("attributes") or {}).get("temperature"))
            if target is not None:
                changes["target_temperature"] = target
            mode = climate.get("state")
            if isinstance(mode, str) and mode.lower() not in UNAVAILABLE_STATES:
                changes["hvac_mode"] = mode

        new_rooms[room_id] = room.with_changes(**changes)

    return new_rooms, new_outside


class DemoDataGenerator:
    """Random drift of the cached readings, for running without Home Assistant.

    Everything it produces is flagged as demo data by the service.
    """

    def __init__(self, seed: Optional[int] = None):
        self.rng = np.random.default_rng(seed)

    def step(self, rooms: dict[str, RoomReading]) -> dict[str, RoomReading]:
        new_rooms = {}
        for room_id, room in rooms.items():
            temp_change = (self.rng.random() - 0.5) * 0.4
            hum_change = math.floor((self.rng.random() - 0.5) * 3)
            changes: dict[str, Any] = {
                "temperature": round(room.temperature + temp_change, 1),
                "humidity": float(np.clip(room.humidity + hum_change, 30, 99)),
            }
            if room.co2:
                co2_change = math.floor((self.rng.random() - 0.5) * 50)
                changes["co2"] = max(400.0, room.co2 + co2_change)
            new_rooms[room_id] = room.with_changes(**changes)
        return new_rooms


def summarize(
    rooms: dict[str, RoomReading], analyses: dict[str, AnalysisResult]
) -> dict[str, Any]:
    """House-level figures: average temperature, open windows, rooms needing attention."""
    temps = [room.temperature for room in rooms.values()]
    return {
        "average_temperature": round(float(np.mean(temps)), 1) if temps else None,
        "open_windows": sum(1 for room in rooms.values() if room.window_open),
        "rooms_needing_attention": [
            room_id
            for room_id, analysis in analyses.items()
            if analysis.score < ATTENTION_SCORE
        ],
        "worst_room": min(analyses, key=lambda r: analyses[r].score) if analyses else None,
    }
