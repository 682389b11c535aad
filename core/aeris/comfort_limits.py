"""
Comfort limit profiles.

Per room category temperature and humidity bounds, with a tighter
temperature band during the night.
"""

import logging
from dataclasses import asdict, dataclass

from .models import STORAGE
from .settings import NightBand

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "default"


@dataclass(frozen=True)
class ComfortLimits:
    """Configured comfort bounds for one room category."""

    temp_min: float
    temp_max: float
    hum_min: float
    hum_max: float
    label: str = ""

    def validate(self) -> None:
        if self.temp_min >= self.temp_max:
            raise ValueError(f"temp_min ({self.temp_min}) must be below temp_max ({self.temp_max})")
        if self.hum_min >= self.hum_max:
            raise ValueError(f"hum_min ({self.hum_min}) must be below hum_max ({self.hum_max})")
        if not (0 <= self.hum_min <= 100 and 0 <= self.hum_max <= 100):
            raise ValueError("Humidity bounds must be within 0-100 %")


@dataclass(frozen=True)
class ResolvedLimits:
    """Bounds in effect for a room at a given hour."""

    temp_min: float
    temp_max: float
    hum_min: float
    hum_max: float
    label: str
    is_night: bool


DEFAULT_LIMITS: dict[str, ComfortLimits] = {
    "living": ComfortLimits(20.0, 23.0, 40.0, 60.0, "Living"),
    "sleeping": ComfortLimits(16.0, 19.0, 40.0, 60.0, "Sleeping"),
    "bathroom": ComfortLimits(21.0, 24.0, 40.0, 70.0, "Bathroom"),
    "storage": ComfortLimits(10.0, 25.0, 30.0, 65.0, "Storage"),
    DEFAULT_CATEGORY: ComfortLimits(19.0, 22.0, 40.0, 60.0, "Default"),
}


class ComfortLimitProfile:
    """User-editable mapping of room category to comfort limits."""

    def __init__(self, limits: dict[str, ComfortLimits] | None = None):
        self._limits = dict(DEFAULT_LIMITS)
        if limits:
            self._limits.update(limits)

    def get(self, category: str) -> ComfortLimits:
        """Limits for a category, falling back to the default profile."""
        return self._limits.get(category) or self._limits[DEFAULT_CATEGORY]

    def update_category(self, category: str, limits: ComfortLimits) -> None:
        """Replace the limits of one category.

        Raises:
            ValueError: If the limits are inconsistent
        """
        limits.validate()
        self._limits[category] = limits
        logger.info(
            f"Comfort limits for '{category}' set to "
            f"{limits.temp_min}-{limits.temp_max}°C, {limits.hum_min}-{limits.hum_max}%"
        )

    def categories(self) -> list[str]:
        return list(self._limits)

    def to_dict(self) -> dict:
        return {category: asdict(limits) for category, limits in self._limits.items()}

    @classmethod
    def from_dict(cls, data: dict | None) -> "ComfortLimitProfile":
        """Restore a persisted profile. Malformed entries keep their defaults."""
        limits = {}
        for category, raw in (data or {}).items():
            try:
                entry = ComfortLimits(
                    temp_min=float(raw["temp_min"]),
                    temp_max=float(raw["temp_max"]),
                    hum_min=float(raw["hum_min"]),
                    hum_max=float(raw["hum_max"]),
                    label=str(raw.get("label", "")),
                )
                entry.validate()
                limits[category] = entry
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring stored comfort limits for '{category}': {e}")
        return cls(limits)


def is_night_hour(hour: int, night: NightBand) -> bool:
    """Whether the hour falls in the night window (which may wrap midnight)."""
    if night.start_hour == night.end_hour:
        return False
    if night.start_hour < night.end_hour:
        return night.start_hour <= hour < night.end_hour
    return hour >= night.start_hour or hour < night.end_hour


def resolve_limits(
    category: str,
    hour: int,
    profile: ComfortLimitProfile,
    night: NightBand | None = None,
) -> ResolvedLimits:
    """Effective limits for a room category at the given local hour.

    At night every category except storage uses the fixed night temperature
    band. Humidity bounds always come from the profile.
    """
    night = night or NightBand()
    limits = profile.get(category)
    is_night = is_night_hour(hour, night)

    temp_min, temp_max = limits.temp_min, limits.temp_max
    if is_night and category != STORAGE:
        temp_min, temp_max = night.temp_min, night.temp_max

    return ResolvedLimits(
        temp_min=temp_min,
        temp_max=temp_max,
        hum_min=limits.hum_min,
        hum_max=limits.hum_max,
        label=limits.label,
        is_night=is_night,
    )
