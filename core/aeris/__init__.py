"""Aeris room comfort analysis and adaptive ventilation package."""

# Define public API
__all__ = [
    "AppSettings",
    "RoomSettings",
    "load_settings",
    "RoomReading",
    "AnalysisResult",
    "HAClient",
    "ComfortMonitorService",
]

# Import settings
from .settings import AppSettings, RoomSettings, load_settings

# Import models
from .models import AnalysisResult, RoomReading

# Import HA client
from .ha_client import HAClient

# Import service
from .comfort_service import ComfortMonitorService
