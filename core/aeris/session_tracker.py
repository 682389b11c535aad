"""
Ventilation Session Tracker

Per-room CLOSED/OPEN state machine that turns window readings into
ventilation sessions and feeds completed sessions to the learning store.

Known precision loss: when the process restarts while a window is open and
no session was persisted, the session is re-baselined at the first poll.
Its start conditions are unknown, so it is not used for learning.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .learning_store import LearningStore
from .models import RoomReading, VentilationSession
from .timer_extensions import TimerExtensionPolicy

logger = logging.getLogger(__name__)

OPENED = "opened"
CLOSED = "closed"
REBASELINED = "rebaselined"


@dataclass(frozen=True)
class SessionTransition:
    """A window state change observed during one poll."""

    room_id: str
    kind: str  # opened, closed or rebaselined
    session: VentilationSession
    duration_minutes: Optional[float] = None
    temp_delta: Optional[float] = None
    learned: bool = False


class VentilationSessionTracker:
    """Tracks at most one active ventilation session per room."""

    def __init__(
        self,
        learning_store: LearningStore,
        extension_policy: TimerExtensionPolicy,
        sessions: dict[str, VentilationSession] | None = None,
    ):
        self.learning_store = learning_store
        self.extension_policy = extension_policy
        self._sessions: dict[str, VentilationSession] = dict(sessions or {})
        self._window_state: dict[str, bool] = {}
        self._last_poll: datetime | None = None

    def get_session(self, room_id: str) -> VentilationSession | None:
        return self._sessions.get(room_id)

    def active_sessions(self) -> dict[str, VentilationSession]:
        return dict(self._sessions)

    def update(self, rooms: dict[str, RoomReading], now: datetime) -> list[SessionTransition]:
        """Advance every room's state machine with the current readings."""
        transitions = []

        # Sessions of rooms that were removed from the configuration
        for room_id in [r for r in self._sessions if r not in rooms]:
            session = self._sessions.pop(room_id)
            self.extension_policy.discard_session(session.key)
            logger.info(f"Discarding session of unknown room {room_id}")

        for room_id, room in rooms.items():
            if not room.has_window:
                continue

            transition = self._advance(room, now)
            if transition:
                transitions.append(transition)
            self._window_state[room_id] = room.window_open

        self._last_poll = now
        return transitions

    def _advance(self, room: RoomReading, now: datetime) -> SessionTransition | None:
        first_observation = room.id not in self._window_state
        session = self._sessions.get(room.id)

        if room.window_open:
            if session is not None:
                # Still open: start values are never re-captured
                return None

            if first_observation:
                session = VentilationSession(
                    room_id=room.id,
                    start_time=now,
                    start_temp=room.temperature,
                    start_humidity=room.humidity,
                    rebaselined=True,
                )
                self._sessions[room.id] = session
                logger.warning(
                    f"🪟 {room.name}: window already open at startup, "
                    f"re-baselining session (not used for learning)"
                )
                return SessionTransition(room.id, REBASELINED, session)

            session = VentilationSession(
                room_id=room.id,
                start_time=self._start_time(room, now),
                start_temp=room.temperature,
                start_humidity=room.humidity,
            )
            self._sessions[room.id] = session
            logger.info(
                f"🪟 {room.name}: window opened at {room.temperature:.1f}°C, "
                f"{room.humidity:.0f}%"
            )
            return SessionTransition(room.id, OPENED, session)

        if session is None:
            return None

        # Window is closed but a session exists: open -> closed
        self._sessions.pop(room.id)
        self.extension_policy.discard_session(session.key)

        duration = session.elapsed_minutes(now)
        delta = session.start_temp - room.temperature

        if first_observation:
            # Closed while we were not running; the flip moment is unknown
            logger.info(f"{room.name}: window closed while offline, session dropped")
            return SessionTransition(room.id, CLOSED, session, duration, delta)

        learned = False
        if not session.rebaselined:
            learned = self.learning_store.record_session_outcome(room.id, duration, delta)

        logger.info(
            f"🪟 {room.name}: window closed after {duration:.1f} min, "
            f"Δ{delta:+.1f}°C"
        )
        return SessionTransition(room.id, CLOSED, session, duration, delta, learned)

    def _start_time(self, room: RoomReading, now: datetime) -> datetime:
        """Use the sensor's change time when it falls within the last poll interval."""
        changed = room.window_changed_at
        if changed is None or changed > now:
            return now
        if self._last_poll is not None and changed < self._last_poll:
            return now
        return changed

    def to_dict(self) -> dict:
        return {room_id: s.to_dict() for room_id, s in self._sessions.items()}

    @staticmethod
    def sessions_from_dict(data: dict | None) -> dict[str, VentilationSession]:
        """Restore persisted sessions. Corrupt entries are dropped."""
        sessions = {}
        for room_id, raw in (data or {}).items():
            try:
                session = VentilationSession.from_dict(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Dropping corrupt session for {room_id}: {e}")
                continue
            sessions[room_id] = session
        return sessions
