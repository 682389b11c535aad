"""
Ventilation Duration Estimator

Combines four sources into one target venting duration:

1. Static lookup table keyed by outside temperature
2. Learned per-room cooling rate (scales the table value)
3. Live extrapolation of the cooling observed in the current session
4. Timer extensions granted when air quality is still poor

Pure: it reads its inputs and mutates nothing.
"""

import math
from datetime import datetime
from typing import Optional

from .comfort_limits import ResolvedLimits
from .models import DurationEstimate, LearningRecord, RoomReading, VentilationSession

# (outside temp upper bound °C, minutes)
BASE_DURATION_TABLE = (
    (5.0, 5),
    (10.0, 10),
    (20.0, 20),
)
WARM_WEATHER_MINUTES = 30

MIN_LEARNING_SAMPLES = 3
MIN_LEARNED_RATE = 0.05  # °C/min
REFERENCE_RATE = 0.1  # °C/min the lookup table is tuned for
FACTOR_MIN = 0.5
FACTOR_MAX = 1.5

ADAPTIVE_MIN_ELAPSED = 3.0  # minutes
ADAPTIVE_MIN_RATE = 0.2  # °C/min
ADAPTIVE_TARGET_MARGIN = 0.5  # cool to this far below temp_max
ADAPTIVE_FULL_TRUST_MINUTES = 15.0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def base_minutes(outside_temp: float) -> int:
    """Venting minutes from the lookup table."""
    for upper_bound, minutes in BASE_DURATION_TABLE:
        if outside_temp < upper_bound:
            return minutes
    return WARM_WEATHER_MINUTES


def has_learned_rate(record: Optional[LearningRecord]) -> bool:
    return (
        record is not None
        and record.sample_count >= MIN_LEARNING_SAMPLES
        and record.avg_rate > MIN_LEARNED_RATE
    )


def learned_factor(record: Optional[LearningRecord]) -> float:
    """Scale factor from the learned cooling rate, 1.0 without enough data."""
    if not has_learned_rate(record):
        return 1.0
    return min(FACTOR_MAX, max(FACTOR_MIN, REFERENCE_RATE / record.avg_rate))


def elapsed_minutes(
    room: RoomReading, session: Optional[VentilationSession], now: datetime
) -> Optional[float]:
    """Minutes the window has been open, if known."""
    if session is not None:
        return session.elapsed_minutes(now)
    if room.window_open and room.window_changed_at is not None:
        return max(0.0, (now - room.window_changed_at).total_seconds() / 60.0)
    return None


def estimate_duration(
    outside_temp: float,
    room: RoomReading,
    limits: ResolvedLimits,
    now: datetime,
    session: Optional[VentilationSession] = None,
    record: Optional[LearningRecord] = None,
    extension_minutes: int = 0,
    is_cross_ventilating: bool = False,
) -> DurationEstimate:
    """Estimate how long the room's window should stay open."""
    base = base_minutes(outside_temp)
    if is_cross_ventilating:
        base = math.ceil(base / 2)

    factor = learned_factor(record)
    target = round_half_up(base * factor)
    elapsed = elapsed_minutes(room, session, now)

    is_adaptive = False
    if (
        session is not None
        and elapsed is not None
        and elapsed >= ADAPTIVE_MIN_ELAPSED
        and room.temperature > limits.temp_max
    ):
        observed_rate = (session.start_temp - room.temperature) / elapsed
        floor_temp = limits.temp_max - ADAPTIVE_TARGET_MARGIN
        if observed_rate > ADAPTIVE_MIN_RATE and room.temperature > floor_temp:
            additional = (room.temperature - floor_temp) / observed_rate
            predicted_total = elapsed + additional
            trust = min(1.0, elapsed / ADAPTIVE_FULL_TRUST_MINUTES)
            target = round_half_up(target * (1 - trust) + predicted_total * trust)
            is_adaptive = True

    return DurationEstimate(
        base_minutes=base,
        learned_factor=factor,
        is_learned=has_learned_rate(record),
        target_minutes=target,
        extension_minutes=extension_minutes,
        total_target_minutes=target + extension_minutes,
        is_adaptive_estimate=is_adaptive,
        elapsed_minutes=elapsed,
    )
