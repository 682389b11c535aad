"""
Comfort Monitor Service

Poll-evaluate-dispatch loop. Every tick:

1. Fetch a sensor snapshot (or drift demo data)
2. Advance the ventilation session state machine
3. Estimate venting durations and analyse every room
4. Dispatch notifications
5. Persist sessions, learning data and timer extensions

The service is the single owner of the session, learning and extension
maps. Ticks never overlap: a poll requested while another one is running
returns the previous snapshot.
"""

import asyncio
import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from .analyzer import analyze_room
from .comfort_limits import ComfortLimitProfile, ComfortLimits, ResolvedLimits, resolve_limits
from .duration_estimator import estimate_duration
from .exceptions import ConfigurationError, HAConnectionError
from .ha_client import HVAC_MODES, HAClient
from .learning_store import LearningStore
from .models import AnalysisResult, DurationEstimate, OutsideReading, RoomReading, VentilationSession
from .notifications import LogNotificationSink, NotificationDispatcher, NotificationSink
from .session_tracker import SessionTransition, VentilationSessionTracker
from .settings import AppSettings
from .snapshot import DemoDataGenerator, apply_snapshot, initial_state, summarize
from .state_store import (
    KEY_COMFORT_LIMITS,
    KEY_LEARNING,
    KEY_SESSIONS,
    KEY_TIMER_EXTENSIONS,
    StateStore,
)
from .timer_extensions import TimerExtensionPolicy
from .topology import RoomTopology, TopologyResult

logger = logging.getLogger(__name__)

STATUS_CONNECTED = "connected"
STATUS_DEGRADED = "degraded"
STATUS_DEMO = "demo"


@dataclass(frozen=True)
class RoomStatus:
    """Everything derived for one room during a tick."""

    reading: RoomReading
    limits: ResolvedLimits
    estimate: DurationEstimate
    analysis: AnalysisResult
    session: Optional[VentilationSession] = None


@dataclass(frozen=True)
class ComfortSnapshot:
    """Immutable result of one poll."""

    timestamp: datetime
    rooms: dict[str, RoomStatus]
    outside: OutsideReading
    connection_status: str
    is_demo: bool
    error_message: str = ""
    last_successful_fetch: Optional[datetime] = None
    transitions: list[SessionTransition] = field(default_factory=list)

    @property
    def summary(self) -> dict[str, Any]:
        return summarize(
            {room_id: s.reading for room_id, s in self.rooms.items()},
            {room_id: s.analysis for room_id, s in self.rooms.items()},
        )


class ComfortMonitorService:
    """Owns the engine state and runs the poll loop."""

    def __init__(
        self,
        settings: AppSettings,
        ha_client: Optional[HAClient] = None,
        notification_sink: Optional[NotificationSink] = None,
        state_store: Optional[StateStore] = None,
        demo_generator: Optional[DemoDataGenerator] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.settings = settings
        self.ha_client = ha_client
        self.clock = clock
        self.demo_generator = demo_generator or DemoDataGenerator()
        self.state_store = state_store or StateStore(settings.state_file)
        self.tz = ZoneInfo(settings.timezone) if settings.timezone else None

        self.topology = RoomTopology(settings.topology, symmetric=settings.symmetric_topology)
        self._check_topology()

        self.state_store.load()
        self.profile = ComfortLimitProfile.from_dict(self.state_store.get(KEY_COMFORT_LIMITS))
        self.learning_store = LearningStore.from_dict(self.state_store.get(KEY_LEARNING))
        self.extension_policy = TimerExtensionPolicy.from_dict(
            self.state_store.get(KEY_TIMER_EXTENSIONS)
        )
        self.tracker = VentilationSessionTracker(
            self.learning_store,
            self.extension_policy,
            VentilationSessionTracker.sessions_from_dict(self.state_store.get(KEY_SESSIONS)),
        )

        self.dispatcher = NotificationDispatcher(notification_sink or LogNotificationSink())

        self._rooms, self._outside = initial_state(settings)
        self._snapshot: Optional[ComfortSnapshot] = None
        self._last_successful_fetch: Optional[datetime] = None
        self._saved_state: Optional[dict] = None

        self._lock = threading.RLock()  # Guards readings and engine maps
        self._poll_lock = threading.Lock()  # Keeps ticks from overlapping
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="aeris-cmd")
        self.command_errors: deque[dict] = deque(maxlen=20)

        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def is_demo(self) -> bool:
        return self.ha_client is None

    def _check_topology(self) -> None:
        known = {room.id for room in self.settings.rooms}
        for room_id, neighbors in self.topology.to_dict().items():
            unknown = [n for n in [room_id, *neighbors] if n not in known]
            if unknown:
                logger.warning(f"Topology references unknown rooms: {unknown}")

    # --- poll loop -------------------------------------------------------

    async def start(self):
        """Start the poll loop."""
        if self._running:
            logger.warning("Comfort monitor already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"🌬️  Comfort monitor started for {len(self.settings.rooms)} room(s)")
        logger.info(f"   Poll interval: {self.settings.poll_interval_seconds} seconds")

    async def stop(self):
        """Stop the poll loop. In-flight commands finish but are not awaited."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        self._executor.shutdown(wait=False)
        logger.info("🌬️  Comfort monitor stopped")

    async def _run_loop(self):
        while self._running:
            try:
                await asyncio.to_thread(self.poll_once)
            except Exception as e:
                logger.error(f"Error in comfort poll loop: {e}", exc_info=True)

            await asyncio.sleep(self.settings.poll_interval_seconds)

    def latest(self) -> ComfortSnapshot:
        """Most recent snapshot, polling once if none exists yet."""
        if self._snapshot is None:
            return self.poll_once()
        return self._snapshot

    def poll_once(self, now: Optional[datetime] = None) -> ComfortSnapshot:
        """Run one poll-evaluate-dispatch tick."""
        if not self._poll_lock.acquire(blocking=False):
            logger.debug("Poll already in progress, skipping")
            if self._snapshot is not None:
                return self._snapshot
            with self._poll_lock:
                return self._snapshot

        try:
            now = now or self.clock()
            status, error = self._fetch(now)

            with self._lock:
                transitions = self.tracker.update(self._rooms, now)
                rooms = {
                    room_id: self._evaluate_room(room, now)
                    for room_id, room in self._rooms.items()
                }
                for room_id, room_status in rooms.items():
                    self.dispatcher.dispatch(
                        room_status.reading,
                        room_status.analysis,
                        room_status.limits,
                        room_status.session,
                        now,
                    )
                self.extension_policy.prune(
                    s.key for s in self.tracker.active_sessions().values()
                )
                self._persist()

                self._snapshot = ComfortSnapshot(
                    timestamp=now,
                    rooms=rooms,
                    outside=self._outside,
                    connection_status=status,
                    is_demo=self.is_demo,
                    error_message=error,
                    last_successful_fetch=self._last_successful_fetch,
                    transitions=transitions,
                )
            return self._snapshot
        finally:
            self._poll_lock.release()

    def _fetch(self, now: datetime) -> tuple[str, str]:
        """Refresh cached readings. On failure the last known values stay."""
        if self.ha_client is None:
            with self._lock:
                self._rooms = self.demo_generator.step(self._rooms)
            return STATUS_DEMO, ""

        try:
            states = self.ha_client.get_states()
        except HAConnectionError as e:
            logger.warning(f"Snapshot fetch failed, using last known values: {e}")
            return STATUS_DEGRADED, str(e)

        with self._lock:
            self._rooms, self._outside = apply_snapshot(
                self._rooms, self._outside, states, self.settings
            )
        self._last_successful_fetch = now
        return STATUS_CONNECTED, ""

    def _local_hour(self, now: datetime) -> int:
        return now.astimezone(self.tz).hour

    def _evaluate_room(self, room: RoomReading, now: datetime) -> RoomStatus:
        limits = resolve_limits(
            room.category, self._local_hour(now), self.profile, self.settings.night
        )
        topology = self.topology.detect(room.id, self._rooms)
        session = self.tracker.get_session(room.id)

        estimate = self._estimate(room, limits, topology, session, now)
        analysis = analyze_room(room, self._outside, limits, topology, estimate)

        # Extensions apply before the published remaining time is computed
        if session is not None and self.extension_policy.maybe_extend(
            session.key, analysis.remaining_minutes, analysis.issues
        ):
            estimate = self._estimate(room, limits, topology, session, now)
            analysis = analyze_room(room, self._outside, limits, topology, estimate)

        return RoomStatus(room, limits, estimate, analysis, session)

    def _estimate(
        self,
        room: RoomReading,
        limits: ResolvedLimits,
        topology: TopologyResult,
        session: Optional[VentilationSession],
        now: datetime,
    ) -> DurationEstimate:
        return estimate_duration(
            outside_temp=self._outside.temperature,
            room=room,
            limits=limits,
            now=now,
            session=session,
            record=self.learning_store.get_record(room.id),
            extension_minutes=self.extension_policy.minutes_for(
                session.key if session else None
            ),
            is_cross_ventilating=topology.is_cross_ventilating,
        )

    def _persist(self) -> None:
        state = {
            KEY_COMFORT_LIMITS: self.profile.to_dict(),
            KEY_SESSIONS: self.tracker.to_dict(),
            KEY_LEARNING: self.learning_store.to_dict(),
            KEY_TIMER_EXTENSIONS: self.extension_policy.to_dict(),
        }
        if state == self._saved_state:
            return

        for key, value in state.items():
            self.state_store.set(key, value)
        try:
            self.state_store.save()
        except OSError as e:
            logger.error(f"State not persisted: {e}")
            return
        self._saved_state = state

    # --- comfort limits --------------------------------------------------

    def update_limits(self, category: str, limits: ComfortLimits) -> None:
        """Change a category's limits. Takes effect on the next poll.

        Raises:
            ValueError: If the limits are inconsistent
        """
        with self._lock:
            self.profile.update_category(category, limits)
            self._persist()

    # --- thermostat commands ---------------------------------------------

    def _climate_entity(self, room_id: str) -> str:
        room_settings = self.settings.get_room(room_id)
        if room_settings is None:
            raise KeyError(room_id)
        if not room_settings.sensors.climate:
            raise ConfigurationError(f"Room {room_id} has no thermostat configured")
        return room_settings.sensors.climate

    def set_target_temperature(self, room_id: str, temperature: float) -> Future:
        """Set a room's thermostat target.

        The cached reading is updated before the call is sent. If the call
        fails the error is recorded; the optimistic value is not rolled back.
        """
        entity_id = self._climate_entity(room_id)
        with self._lock:
            self._rooms[room_id] = self._rooms[room_id].with_changes(
                target_temperature=temperature
            )
        return self._submit(
            room_id,
            "set_temperature",
            lambda: self.ha_client.set_temperature(entity_id, temperature),
        )

    def set_mode(self, room_id: str, mode: str) -> Future:
        """Switch a room's thermostat between "heat" and "off" (optimistic)."""
        if mode not in HVAC_MODES:
            raise ValueError(f"Unsupported HVAC mode: {mode}")
        entity_id = self._climate_entity(room_id)
        with self._lock:
            self._rooms[room_id] = self._rooms[room_id].with_changes(hvac_mode=mode)
        return self._submit(
            room_id,
            "set_hvac_mode",
            lambda: self.ha_client.set_hvac_mode(entity_id, mode),
        )

    def _submit(self, room_id: str, action: str, call: Callable[[], None]) -> Future:
        if self.ha_client is None:
            logger.info(f"Demo mode: {action} for {room_id} applied locally only")
            future: Future = Future()
            future.set_result(True)
            return future

        def run() -> bool:
            try:
                call()
            except Exception as e:
                logger.error(f"Command {action} for {room_id} failed: {e}")
                self.command_errors.append(
                    {
                        "timestamp": self.clock().isoformat(),
                        "room_id": room_id,
                        "action": action,
                        "error": str(e),
                    }
                )
                return False
            return True

        return self._executor.submit(run)
