"""Tests for the learned cooling rate store."""

import pytest

from core.aeris.learning_store import LearningStore


def test_missing_room_returns_zero_record():
    record = LearningStore().get_record("living")
    assert record.sample_count == 0
    assert record.avg_rate == 0.0


@pytest.mark.parametrize("duration,delta", [(4.9, 1.0), (10.0, 0.0), (10.0, -0.5)])
def test_short_or_warming_sessions_are_ignored(duration, delta):
    store = LearningStore()
    assert store.record_session_outcome("living", duration, delta) is False
    assert store.get_record("living").sample_count == 0


def test_first_sample_sets_rate():
    store = LearningStore()
    assert store.record_session_outcome("living", 10.0, 2.0)
    record = store.get_record("living")
    assert record.sample_count == 1
    assert record.avg_rate == pytest.approx(0.2)


def test_later_samples_use_moving_average():
    store = LearningStore()
    store.record_session_outcome("living", 10.0, 2.0)  # 0.2 °C/min
    store.record_session_outcome("living", 10.0, 1.0)  # 0.1 °C/min
    record = store.get_record("living")
    assert record.sample_count == 2
    assert record.avg_rate == pytest.approx(0.2 * 0.8 + 0.1 * 0.2)


def test_exactly_five_minutes_counts():
    store = LearningStore()
    assert store.record_session_outcome("living", 5.0, 0.5)


def test_get_record_returns_copy():
    store = LearningStore()
    store.record_session_outcome("living", 10.0, 2.0)
    store.get_record("living").sample_count = 99
    assert store.get_record("living").sample_count == 1


def test_round_trip():
    store = LearningStore()
    store.record_session_outcome("bath", 20.0, 3.0)
    restored = LearningStore.from_dict(store.to_dict())
    assert restored.get_record("bath") == store.get_record("bath")


def test_corrupt_entries_are_dropped():
    restored = LearningStore.from_dict(
        {
            "living": {"sample_count": "many", "avg_rate": 0.1},
            "kitchen": {"avg_rate": 0.1},
            "bath": {"sample_count": -1, "avg_rate": 0.1},
            "kids": {"sample_count": 2, "avg_rate": float("nan")},
            "bedroom": {"sample_count": 4, "avg_rate": 0.12},
        }
    )
    assert set(restored.all_records()) == {"bedroom"}
