"""Tests for automatic venting timer extensions."""

from core.aeris.models import Issue
from core.aeris.timer_extensions import MAX_EXTENSION_MINUTES, TimerExtensionPolicy

KEY = "bath@2024-01-15T12:00:00+00:00"
HUMID = [Issue("humidity", "high", "warning", "Humid")]
CO2 = [Issue("co2", "high", "critical", "Poor air quality")]
DRY = [Issue("humidity", "low", "warning", "Dry air")]


def test_extends_in_steps_of_five_up_to_cap():
    policy = TimerExtensionPolicy()
    totals = []
    for _ in range(10):
        policy.maybe_extend(KEY, 0, HUMID)
        totals.append(policy.minutes_for(KEY))
    assert totals == [5, 10, 15, 20, 25, 30, 30, 30, 30, 30]
    assert policy.minutes_for(KEY) == MAX_EXTENSION_MINUTES


def test_each_step_fires_once():
    policy = TimerExtensionPolicy()
    fired = [policy.maybe_extend(KEY, -1, CO2) for _ in range(8)]
    assert fired.count(True) == 6


def test_no_extension_while_time_remains():
    policy = TimerExtensionPolicy()
    assert not policy.maybe_extend(KEY, 3, HUMID)
    assert not policy.maybe_extend(KEY, None, HUMID)
    assert policy.minutes_for(KEY) == 0


def test_no_extension_when_air_is_fine():
    policy = TimerExtensionPolicy()
    assert not policy.maybe_extend(KEY, 0, [])
    assert not policy.maybe_extend(KEY, 0, DRY)


def test_discard_forgets_session():
    policy = TimerExtensionPolicy()
    policy.maybe_extend(KEY, 0, HUMID)
    policy.discard_session(KEY)
    assert policy.minutes_for(KEY) == 0
    assert policy.to_dict() == {}


def test_prune_drops_inactive_sessions():
    policy = TimerExtensionPolicy()
    policy.maybe_extend(KEY, 0, HUMID)
    policy.maybe_extend("kids@x", 0, HUMID)
    policy.prune([KEY])
    assert policy.to_dict() == {KEY: 5}


def test_restored_extensions_do_not_refire_steps():
    policy = TimerExtensionPolicy.from_dict({KEY: 10})
    assert policy.minutes_for(KEY) == 10
    assert policy.maybe_extend(KEY, 0, HUMID)
    assert policy.minutes_for(KEY) == 15


def test_from_dict_sanitizes_values():
    policy = TimerExtensionPolicy.from_dict(
        {"a": 45, "b": 7, "c": "oops", "d": -5, "e": 3, "f": None}
    )
    assert policy.to_dict() == {"a": 30, "b": 5}


def test_unknown_session_has_no_extension():
    assert TimerExtensionPolicy().minutes_for(None) == 0
