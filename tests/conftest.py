"""Shared fixtures for the Aeris test suite."""

from datetime import datetime, timezone

import pytest

from core.aeris.comfort_limits import ResolvedLimits
from core.aeris.models import DurationEstimate, OutsideReading, RoomReading

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_room():
    """Factory for room readings with sensible daytime defaults."""

    def _make(**overrides) -> RoomReading:
        values = {
            "id": "living",
            "name": "Living Room",
            "category": "living",
            "temperature": 21.0,
            "humidity": 50.0,
            "has_window": True,
        }
        values.update(overrides)
        return RoomReading(**values)

    return _make


@pytest.fixture
def day_limits():
    return ResolvedLimits(
        temp_min=20.0, temp_max=23.0, hum_min=40.0, hum_max=60.0, label="Living", is_night=False
    )


@pytest.fixture
def cold_dry_outside():
    return OutsideReading(temperature=3.0, humidity=80.0)


@pytest.fixture
def make_estimate():
    def _make(total=20, elapsed=None, learned=False, adaptive=False, extension=0) -> DurationEstimate:
        return DurationEstimate(
            base_minutes=total - extension,
            learned_factor=1.0,
            is_learned=learned,
            target_minutes=total - extension,
            extension_minutes=extension,
            total_target_minutes=total,
            is_adaptive_estimate=adaptive,
            elapsed_minutes=elapsed,
        )

    return _make
