"""Tests for the ventilation session state machine."""

from datetime import timedelta

import pytest

from core.aeris.learning_store import LearningStore
from core.aeris.models import Issue, VentilationSession
from core.aeris.session_tracker import (
    CLOSED,
    OPENED,
    REBASELINED,
    VentilationSessionTracker,
)
from core.aeris.timer_extensions import TimerExtensionPolicy


@pytest.fixture
def learning():
    return LearningStore()


@pytest.fixture
def extensions():
    return TimerExtensionPolicy()


@pytest.fixture
def tracker(learning, extensions):
    return VentilationSessionTracker(learning, extensions)


def poll(tracker, room, when):
    return tracker.update({room.id: room}, when)


def test_open_close_cycle_creates_one_session_and_learns(tracker, learning, make_room, now):
    closed = make_room(temperature=21.0)
    assert poll(tracker, closed, now) == []

    opened_at = now + timedelta(seconds=5)
    room = closed.with_changes(window_open=True, window_changed_at=opened_at)
    transitions = poll(tracker, room, now + timedelta(seconds=10))
    assert [t.kind for t in transitions] == [OPENED]
    session = tracker.get_session("living")
    assert session.start_time == opened_at
    assert session.start_temp == 21.0

    # Still open and cooler: start values are kept
    for minutes in (1, 5, 9):
        cooler = room.with_changes(temperature=21.0 - minutes * 0.1)
        assert poll(tracker, cooler, opened_at + timedelta(minutes=minutes)) == []
    assert tracker.get_session("living") is session

    close_time = opened_at + timedelta(minutes=10)
    transitions = poll(tracker, room.with_changes(window_open=False, temperature=20.0), close_time)
    assert len(transitions) == 1
    transition = transitions[0]
    assert transition.kind == CLOSED
    assert transition.duration_minutes == pytest.approx(10.0)
    assert transition.temp_delta == pytest.approx(1.0)
    assert transition.learned
    assert tracker.get_session("living") is None

    record = learning.get_record("living")
    assert record.sample_count == 1
    assert record.avg_rate == pytest.approx(0.1)


def test_reopen_creates_new_session(tracker, make_room, now):
    room = make_room()
    poll(tracker, room, now)
    poll(tracker, room.with_changes(window_open=True), now + timedelta(minutes=1))
    first = tracker.get_session("living")
    poll(tracker, room, now + timedelta(minutes=2))
    poll(tracker, room.with_changes(window_open=True), now + timedelta(minutes=3))
    second = tracker.get_session("living")
    assert second is not first
    assert second.start_time == now + timedelta(minutes=3)


def test_window_open_at_startup_is_rebaselined(tracker, learning, make_room, now):
    room = make_room(window_open=True, window_changed_at=now - timedelta(hours=1))
    transitions = poll(tracker, room, now)
    assert [t.kind for t in transitions] == [REBASELINED]
    session = tracker.get_session("living")
    assert session.rebaselined
    assert session.start_time == now

    transitions = poll(
        tracker, room.with_changes(window_open=False, temperature=19.0), now + timedelta(minutes=20)
    )
    assert transitions[0].kind == CLOSED
    assert not transitions[0].learned
    assert learning.get_record("living").sample_count == 0


def test_persisted_session_resumes_without_rebaseline(learning, extensions, make_room, now):
    session = VentilationSession("living", now - timedelta(minutes=8), 22.0, 55.0)
    tracker = VentilationSessionTracker(learning, extensions, {"living": session})
    assert poll(tracker, make_room(window_open=True), now) == []
    assert tracker.get_session("living") is session


def test_window_closed_while_offline_drops_session(learning, extensions, make_room, now):
    session = VentilationSession("living", now - timedelta(minutes=30), 22.0, 55.0)
    tracker = VentilationSessionTracker(learning, extensions, {"living": session})
    transitions = poll(tracker, make_room(temperature=20.0), now)
    assert transitions[0].kind == CLOSED
    assert not transitions[0].learned
    assert tracker.get_session("living") is None
    assert learning.get_record("living").sample_count == 0


def test_stale_change_time_falls_back_to_now(tracker, make_room, now):
    room = make_room()
    poll(tracker, room, now)
    stale = room.with_changes(window_open=True, window_changed_at=now - timedelta(minutes=5))
    poll(tracker, stale, now + timedelta(seconds=10))
    assert tracker.get_session("living").start_time == now + timedelta(seconds=10)


def test_future_change_time_falls_back_to_now(tracker, make_room, now):
    room = make_room()
    poll(tracker, room, now)
    future = room.with_changes(window_open=True, window_changed_at=now + timedelta(minutes=5))
    poll(tracker, future, now + timedelta(seconds=10))
    assert tracker.get_session("living").start_time == now + timedelta(seconds=10)


def test_rooms_without_window_are_ignored(tracker, make_room, now):
    room = make_room(has_window=False, window_open=True)
    assert poll(tracker, room, now) == []
    assert tracker.active_sessions() == {}


def test_sessions_of_removed_rooms_are_discarded(learning, extensions, make_room, now):
    session = VentilationSession("attic", now - timedelta(minutes=3), 22.0, 55.0)
    extensions.maybe_extend(session.key, 0, [Issue("co2", "high", "warning", "CO2 elevated")])
    tracker = VentilationSessionTracker(learning, extensions, {"attic": session})
    poll(tracker, make_room(), now)
    assert tracker.active_sessions() == {}
    assert extensions.minutes_for(session.key) == 0


def test_closing_discards_timer_extensions(tracker, extensions, make_room, now):
    room = make_room()
    poll(tracker, room, now)
    poll(tracker, room.with_changes(window_open=True), now + timedelta(seconds=10))
    key = tracker.get_session("living").key
    extensions.maybe_extend(key, 0, [Issue("humidity", "high", "warning", "Humid")])
    assert extensions.minutes_for(key) == 5

    poll(tracker, room, now + timedelta(minutes=15))
    assert extensions.minutes_for(key) == 0


def test_sessions_round_trip_and_corrupt_entries(tracker, make_room, now):
    room = make_room()
    poll(tracker, room, now)
    poll(tracker, room.with_changes(window_open=True), now + timedelta(seconds=10))
    data = tracker.to_dict()
    data["kids"] = {"room_id": "kids", "start_time": "yesterday"}

    restored = VentilationSessionTracker.sessions_from_dict(data)
    assert set(restored) == {"living"}
    assert restored["living"].start_time == now + timedelta(seconds=10)
