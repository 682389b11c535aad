"""
Aeris Configuration Settings

User-facing settings are loaded from the Home Assistant add-on options
(/data/options.json), from config.yaml during development, or fall back to a
built-in demo house. Credentials always come from the environment.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .models import ROOM_CATEGORIES

logger = logging.getLogger(__name__)

OPTIONS_PATH = "/data/options.json"
CONFIG_YAML_PATH = os.path.join(os.path.dirname(__file__), "..", "..", "config.yaml")


def _camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


def _convert_keys(data: dict) -> dict:
    return {_camel_to_snake(k): v for k, v in data.items()}


@dataclass
class SensorMapping:
    """Home Assistant entities feeding one room."""

    temp: Optional[str] = None
    humidity: Optional[str] = None
    co2: Optional[str] = None
    window: Optional[str] = None
    climate: Optional[str] = None  # Thermostat for set-point/mode commands

    @classmethod
    def from_dict(cls, data: dict | None) -> "SensorMapping":
        if not data:
            return cls()
        converted = _convert_keys(data)
        # Accept the long form used in older configs
        if "temperature" in converted:
            converted["temp"] = converted.pop("temperature")
        return cls(**converted)

    @property
    def is_empty(self) -> bool:
        return not any((self.temp, self.humidity, self.co2, self.window, self.climate))


@dataclass
class RoomSettings:
    """Configuration for a single room."""

    id: str
    name: str
    category: str = "other"
    has_co2: bool = False
    has_window: bool = False
    has_ventilation_assist: bool = False
    sensors: SensorMapping = field(default_factory=SensorMapping)
    initial_temp: float = 21.0  # Shown until the first successful poll
    initial_humidity: float = 50.0
    initial_co2: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> "RoomSettings":
        """Create from dictionary."""
        converted = _convert_keys(data)

        # Legacy flag name from the dashboard config
        if "has_ventilation" in converted:
            converted["has_ventilation_assist"] = converted.pop("has_ventilation")
        # "type" is what the dashboard called the category
        if "type" in converted:
            converted["category"] = converted.pop("type")
        converted["sensors"] = SensorMapping.from_dict(converted.get("sensors"))

        if "id" not in converted:
            raise ConfigurationError(f"Room without id: {data}")
        converted.setdefault("name", converted["id"].replace("_", " ").title())

        room = cls(**converted)
        if room.category not in ROOM_CATEGORIES:
            logger.warning(
                f"Room {room.id}: unknown category '{room.category}', using default limits"
            )
        return room


@dataclass
class OutsideSettings:
    """Outdoor weather station entities."""

    temp: Optional[str] = None
    humidity: Optional[str] = None
    initial_temp: float = 12.5
    initial_humidity: float = 75.0

    @classmethod
    def from_dict(cls, data: dict | None) -> "OutsideSettings":
        if not data:
            return cls()
        return cls(**_convert_keys(data))


@dataclass
class NightBand:
    """Tighter temperature band applied during the night window."""

    start_hour: int = 23
    end_hour: int = 7
    temp_min: float = 17.5
    temp_max: float = 19.0

    @classmethod
    def from_dict(cls, data: dict | None) -> "NightBand":
        if not data:
            return cls()
        band = cls(**_convert_keys(data))
        if not (0 <= band.start_hour <= 23 and 0 <= band.end_hour <= 23):
            raise ConfigurationError(f"Night hours must be within 0-23: {data}")
        if band.temp_min > band.temp_max:
            raise ConfigurationError(f"Night temp_min above temp_max: {data}")
        return band


@dataclass
class AppSettings:
    """Complete Aeris configuration."""

    rooms: list[RoomSettings]
    outside: OutsideSettings = field(default_factory=OutsideSettings)
    topology: dict[str, list[str]] = field(default_factory=dict)
    symmetric_topology: bool = True
    night: NightBand = field(default_factory=NightBand)
    poll_interval_seconds: int = 10
    notify_service: Optional[str] = None  # e.g. "mobile_app_pixel"
    state_file: str = "/data/aeris_state.json"
    timezone: Optional[str] = None  # IANA name for the night window, default: system local
    ha_url: str = ""
    ha_token: str = ""

    @property
    def has_credentials(self) -> bool:
        return bool(self.ha_url and self.ha_token)

    def get_room(self, room_id: str) -> Optional[RoomSettings]:
        return next((r for r in self.rooms if r.id == room_id), None)

    @classmethod
    def from_dict(cls, data: dict) -> "AppSettings":
        """Create from an add-on options dictionary."""
        converted = _convert_keys(data)

        rooms = [RoomSettings.from_dict(r) for r in converted.pop("rooms", [])]
        ids = [r.id for r in rooms]
        if len(ids) != len(set(ids)):
            raise ConfigurationError(f"Duplicate room ids in configuration: {ids}")

        topology = {
            str(room_id): [str(n) for n in neighbors or []]
            for room_id, neighbors in (converted.pop("topology", None) or {}).items()
        }

        settings = cls(
            rooms=rooms,
            outside=OutsideSettings.from_dict(converted.pop("outside", None)),
            topology=topology,
            night=NightBand.from_dict(converted.pop("night", None)),
            **converted,
        )
        if settings.poll_interval_seconds <= 0:
            raise ConfigurationError("poll_interval_seconds must be positive")
        return settings


def default_settings() -> AppSettings:
    """Demo house used when no configuration is available."""
    rooms = [
        RoomSettings(
            id="living", name="Living Room", category="living",
            has_co2=True, has_window=True,
            initial_temp=21.5, initial_humidity=45, initial_co2=650,
        ),
        RoomSettings(
            id="kitchen", name="Kitchen", category="living",
            has_window=True, initial_temp=22.1, initial_humidity=68,
        ),
        RoomSettings(
            id="bedroom", name="Bedroom", category="sleeping",
            has_co2=True, has_window=True, has_ventilation_assist=True,
            initial_temp=18.0, initial_humidity=50, initial_co2=900,
        ),
        RoomSettings(
            id="kids", name="Kids Room", category="sleeping",
            has_window=True, has_ventilation_assist=True,
            initial_temp=20.5, initial_humidity=55,
        ),
        RoomSettings(
            id="play", name="Playroom", category="living",
            initial_temp=21.0, initial_humidity=48,
        ),
        RoomSettings(
            id="bath", name="Bathroom", category="bathroom",
            has_window=True, has_ventilation_assist=True,
            initial_temp=23.5, initial_humidity=82,
        ),
        RoomSettings(
            id="dining", name="Dining Room", category="living",
            initial_temp=21.2, initial_humidity=46,
        ),
        RoomSettings(
            id="basement", name="Basement", category="storage",
            has_window=True, initial_temp=14.0, initial_humidity=60,
        ),
    ]
    topology = {
        "living": ["kitchen", "dining"],
        "kitchen": ["dining"],
        "bedroom": ["kids", "bath"],
        "kids": ["play"],
    }
    return AppSettings(rooms=rooms, topology=topology)


def load_settings(
    options_path: str = OPTIONS_PATH,
    config_path: str = CONFIG_YAML_PATH,
) -> AppSettings:
    """Load settings from add-on options, config.yaml, or the demo house.

    Raises:
        ConfigurationError: If a configuration file exists but is invalid
    """
    load_dotenv()

    options = None
    if os.path.exists(options_path):
        try:
            with open(options_path) as f:
                options = json.load(f)
            logger.info(f"Loaded configuration from {options_path}")
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read {options_path}: {e}") from e
    elif os.path.exists(config_path):
        try:
            with open(config_path) as f:
                options = (yaml.safe_load(f) or {}).get("options")
            logger.info(f"Loaded configuration from {config_path}")
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read {config_path}: {e}") from e

    if options and options.get("rooms"):
        try:
            settings = AppSettings.from_dict(options)
        except TypeError as e:
            raise ConfigurationError(f"Unexpected configuration key: {e}") from e
    else:
        settings = default_settings()
        logger.warning("Using development room configuration")

    settings.ha_url = os.environ.get("HA_URL", settings.ha_url)
    settings.ha_token = os.environ.get("HA_TOKEN", settings.ha_token)
    return settings
