"""
Comfort Analyzer

Turns one room's readings into a comfort score, a list of issues and an
ordered list of recommendations. Pure: every poll recomputes the result
from the current snapshot.

Rules run in a fixed order; later rules may look at what earlier rules
recommended:

1. Too cold
2. Too warm (with night tolerance)
3. Too dry
4. Too humid (dew point decides whether venting helps)
5. CO2
6. Heat loss through an open window
"""

import math
from typing import Optional

from .comfort_limits import ResolvedLimits
from .models import AnalysisResult, DurationEstimate, Issue, OutsideReading, RoomReading
from .psychrometrics import dew_point
from .topology import TopologyResult

# Score penalties
TEMP_PENALTY = 20
TEMP_NIGHT_PENALTY = 10
NIGHT_WARM_TOLERANCE = 2.0  # °C above temp_max tolerated at night
HUM_LOW_PENALTY = 15
HUM_HIGH_PENALTY = 15
HUM_CRITICAL_PENALTY = 30
HUM_CRITICAL_MARGIN = 10.0  # %RH above hum_max
CO2_WARN_PPM = 1000
CO2_CRITICAL_PPM = 1500
CO2_WARN_PENALTY = 20
CO2_CRITICAL_PENALTY = 50
SUN_MARGIN = 0.5  # Outside this close to inside means venting won't cool

WARNING = "warning"
CRITICAL = "critical"


def _mode_tag(topology: TopologyResult, estimate: DurationEstimate) -> str:
    if topology.is_cross_ventilating:
        return " (cross-ventilation)"
    if estimate.is_adaptive_estimate:
        return " (adaptive)"
    if estimate.is_learned:
        return " (learned)"
    return ""


def _remaining_minutes(room: RoomReading, estimate: DurationEstimate) -> Optional[int]:
    if not room.window_open or estimate.elapsed_minutes is None:
        return None
    return math.ceil(estimate.total_target_minutes - estimate.elapsed_minutes)


class _Recommendations(list):
    """Recommendation list that skips duplicates."""

    def add(self, text: str) -> None:
        if text not in self:
            self.append(text)


def _suggest_helpers(
    recs: _Recommendations, room: RoomReading, topology: TopologyResult
) -> None:
    """Neighbour window, neighbour fan and the room's own fan."""
    if topology.window_neighbor is not None:
        recs.add(f"Also open the window in {topology.window_neighbor.name} for cross-ventilation")
    if topology.assist_neighbor is not None:
        recs.add(
            f"Switch on the ventilation in {topology.assist_neighbor.name} to draw air through"
        )
    if room.has_ventilation_assist:
        recs.add("Switch on the room ventilation as well")


def analyze_room(
    room: RoomReading,
    outside: OutsideReading,
    limits: ResolvedLimits,
    topology: TopologyResult,
    estimate: DurationEstimate,
) -> AnalysisResult:
    """Score a room and derive what the occupants should do."""
    score = 100
    issues: list[Issue] = []
    recs = _Recommendations()
    total = estimate.total_target_minutes
    remaining = _remaining_minutes(room, estimate)
    countdown_added = False
    tag = _mode_tag(topology, estimate)

    # 1. Too cold
    if room.temperature < limits.temp_min:
        score -= TEMP_PENALTY
        issues.append(Issue("temp", "low", WARNING, "Too cold"))
        if not room.window_open:
            recs.add("Check the heating")

    # 2. Too warm
    elif room.temperature > limits.temp_max:
        if not limits.is_night or room.temperature > limits.temp_max + NIGHT_WARM_TOLERANCE:
            if limits.is_night:
                score -= TEMP_NIGHT_PENALTY
                issues.append(Issue("temp", "high", WARNING, "Warm (night)"))
            else:
                score -= TEMP_PENALTY
                issues.append(Issue("temp", "high", WARNING, "Too warm"))

            if outside.temperature >= room.temperature - SUN_MARGIN:
                recs.add("Close blinds to block the sun, venting won't cool the room")
            else:
                recs.add("Open a window or turn the heating down")

    dp_inside = dew_point(room.temperature, room.humidity)
    dp_outside = dew_point(outside.temperature, outside.humidity)

    # 3. Too dry
    if room.humidity < limits.hum_min:
        score -= HUM_LOW_PENALTY
        issues.append(Issue("humidity", "low", WARNING, "Dry air"))
        recs.add("Use a humidifier or dry laundry in the room")

    # 4. Too humid
    elif room.humidity > limits.hum_max:
        if room.humidity > limits.hum_max + HUM_CRITICAL_MARGIN:
            score -= HUM_CRITICAL_PENALTY
            issues.append(Issue("humidity", "high", CRITICAL, "Very humid"))
        else:
            score -= HUM_HIGH_PENALTY
            issues.append(Issue("humidity", "high", WARNING, "Humid"))

        if dp_outside < dp_inside:
            if remaining is not None:
                if remaining > 0:
                    recs.add(f"Keep venting for about {remaining} more minutes{tag}")
                    countdown_added = True
                else:
                    recs.add("Vented enough: close the window")
            elif room.window_open:
                recs.add(f"Keep venting for about {total} minutes")
            else:
                recs.add(f"Open the window for {total} minutes")
                if not topology.is_cross_ventilating:
                    _suggest_helpers(recs, room, topology)
        else:
            recs.add("Venting ineffective right now: outside air is too humid")

    # 5. CO2
    if room.has_co2 and room.co2 and room.co2 > CO2_WARN_PPM:
        is_critical = room.co2 >= CO2_CRITICAL_PPM
        if is_critical:
            score -= CO2_CRITICAL_PENALTY
            issues.append(Issue("co2", "high", CRITICAL, "Poor air quality"))
        else:
            score -= CO2_WARN_PENALTY
            issues.append(Issue("co2", "high", WARNING, "CO2 elevated"))

        if remaining is not None:
            if remaining > 0:
                recs.add(f"Lower CO2: keep the window open for {remaining} more minutes{tag}")
                countdown_added = True
            else:
                recs.add("Air should be fresh now: close the window")
        else:
            if room.window_open:
                recs.add(f"Keep venting for about {total} minutes")
            elif is_critical:
                recs.add(f"Open the window immediately (at least {total} minutes)")
            else:
                recs.add(f"Air out for about {total} minutes")
            if not topology.is_cross_ventilating:
                _suggest_helpers(recs, room, topology)

    # 6. Heat loss
    if room.window_open and room.temperature < limits.temp_min and not countdown_added:
        recs.add("Heat loss: close the window")

    return AnalysisResult(
        room_id=room.id,
        score=max(0, score),
        issues=issues,
        recommendations=list(recs),
        dew_point_inside=round(dp_inside, 1),
        is_cross_ventilating=topology.is_cross_ventilating,
        total_target_minutes=total,
        is_night=limits.is_night,
        is_adaptive_estimate=estimate.is_adaptive_estimate,
        remaining_minutes=remaining,
        is_venting=countdown_added,
    )
