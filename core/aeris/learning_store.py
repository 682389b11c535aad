"""
Per-room learned cooling rate.

Keeps an exponentially weighted average of how fast each room cools while
a window is open, updated once per completed ventilation session.
"""

import logging

from .models import LearningRecord

logger = logging.getLogger(__name__)

MIN_SESSION_MINUTES = 5.0
EMA_WEIGHT_OLD = 0.8
EMA_WEIGHT_NEW = 0.2


class LearningStore:
    """Learned cooling rates, keyed by room id."""

    def __init__(self, records: dict[str, LearningRecord] | None = None):
        self._records: dict[str, LearningRecord] = dict(records or {})

    def get_record(self, room_id: str) -> LearningRecord:
        """Record for a room; an empty record when nothing was learned yet."""
        record = self._records.get(room_id)
        if record is None:
            return LearningRecord(room_id=room_id)
        return LearningRecord(room_id, record.sample_count, record.avg_rate)

    def record_session_outcome(
        self, room_id: str, duration_minutes: float, temp_delta: float
    ) -> bool:
        """Learn from a closed session.

        Args:
            room_id: Room the session belonged to
            duration_minutes: How long the window was open
            temp_delta: Start temperature minus temperature at close (°C)

        Returns:
            True if the record was updated
        """
        if duration_minutes < MIN_SESSION_MINUTES or temp_delta <= 0:
            logger.debug(
                f"Room {room_id}: session of {duration_minutes:.1f} min, "
                f"Δ{temp_delta:+.2f}°C not used for learning"
            )
            return False

        rate = temp_delta / duration_minutes
        record = self._records.get(room_id) or LearningRecord(room_id=room_id)

        if record.sample_count == 0:
            record.avg_rate = rate
        else:
            record.avg_rate = record.avg_rate * EMA_WEIGHT_OLD + rate * EMA_WEIGHT_NEW
        record.sample_count += 1
        self._records[room_id] = record

        logger.info(
            f"🧠 Room {room_id}: cooling rate {rate:.3f}°C/min → "
            f"avg {record.avg_rate:.3f}°C/min ({record.sample_count} samples)"
        )
        return True

    def all_records(self) -> dict[str, LearningRecord]:
        return {room_id: self.get_record(room_id) for room_id in self._records}

    def to_dict(self) -> dict:
        return {
            room_id: {"sample_count": r.sample_count, "avg_rate": r.avg_rate}
            for room_id, r in self._records.items()
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "LearningStore":
        """Restore persisted records. Unusable entries are dropped."""
        records = {}
        for room_id, raw in (data or {}).items():
            try:
                sample_count = int(raw["sample_count"])
                avg_rate = float(raw["avg_rate"])
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Dropping corrupt learning record for {room_id}: {e}")
                continue
            if sample_count < 0 or avg_rate != avg_rate:  # NaN check
                logger.warning(f"Dropping invalid learning record for {room_id}")
                continue
            records[room_id] = LearningRecord(room_id, sample_count, avg_rate)
        return cls(records)
