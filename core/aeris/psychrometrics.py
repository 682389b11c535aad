"""
Psychrometric helpers.

Dew point via the Magnus approximation, used to judge whether outside air
can dry an indoor space.
"""

import math

MAGNUS_A = 17.27
MAGNUS_B = 237.7  # °C


def dew_point(temperature: float, relative_humidity: float) -> float:
    """Dew point in °C for a temperature (°C) and relative humidity (%).

    Returns 0.0 when either input is missing or zero. Callers must read 0.0
    as "unavailable", not as a physical dew point.
    """
    if not temperature or not relative_humidity or relative_humidity < 0:
        return 0.0

    alpha = (MAGNUS_A * temperature) / (MAGNUS_B + temperature) + math.log(
        relative_humidity / 100.0
    )
    return (MAGNUS_B * alpha) / (MAGNUS_A - alpha)
