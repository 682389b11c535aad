"""
Notification Dispatcher

Turns analysis results into at most one outbound notification per state
change. Only two transitions vibrate and ask for attention again:

- the room dropped below its minimum temperature while venting
- the venting timer ran out

Every other change to the status text is delivered silently, and an
identical text is never sent twice in a row for the same room.
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from .comfort_limits import ResolvedLimits
from .models import AnalysisResult, RoomReading, VentilationSession

logger = logging.getLogger(__name__)

CRITICAL_SCORE = 50
ALERT_VIBRATION = [200, 100, 200]

ICON_VENTING = "🪟"
ICON_TIME_UP = "⏰"
ICON_COLD = "❄️"
ICON_CRITICAL = "⚠️"


class NotificationSink(Protocol):
    """Something that can deliver a notification to the user."""

    def notify(
        self,
        title: str,
        body: str,
        tag: str,
        vibration_pattern: list[int],
        require_reattention: bool,
    ) -> None:
        ...


class LogNotificationSink:
    """Sink that only logs. Used when no notify service is configured.

    The most recent notifications are kept in `sent` for inspection.
    """

    def __init__(self, history: int = 50):
        self.sent: deque[dict] = deque(maxlen=history)

    def notify(self, title, body, tag, vibration_pattern, require_reattention):
        self.sent.append(
            {
                "title": title,
                "body": body,
                "tag": tag,
                "vibration_pattern": list(vibration_pattern),
                "require_reattention": require_reattention,
            }
        )
        logger.info(f"🔔 [{tag}] {title}: {body}")


@dataclass
class _RoomNotificationState:
    last_body: Optional[str] = None
    last_remaining: Optional[int] = None
    was_too_cold: bool = False
    critical_hour: Optional[str] = None
    last_critical_body: Optional[str] = None


def _reason(room: RoomReading, analysis: AnalysisResult) -> str:
    if analysis.has_issue("co2") and room.co2:
        return f"CO2 {room.co2:.0f} ppm"
    if analysis.has_issue("humidity", "high"):
        return f"humidity {room.humidity:.0f}%"
    return "air quality good"


class NotificationDispatcher:
    """Deduplicates and formats outbound alerts per room."""

    def __init__(self, sink: NotificationSink):
        self.sink = sink
        self._state: dict[str, _RoomNotificationState] = {}

    def dispatch(
        self,
        room: RoomReading,
        analysis: AnalysisResult,
        limits: ResolvedLimits,
        session: Optional[VentilationSession],
        now: datetime,
    ) -> int:
        """Send whatever this analysis cycle warrants.

        Returns:
            Number of notifications sent
        """
        state = self._state.setdefault(room.id, _RoomNotificationState())
        sent = 0

        # (a) Critical air quality, at most once per room per calendar hour
        if analysis.score <= CRITICAL_SCORE:
            hour_key = now.strftime("%Y-%m-%d %H")
            issues = ", ".join(i.message for i in analysis.issues) or "check the room"
            body = f"{ICON_CRITICAL} Score {analysis.score}/100: {issues}"
            if state.critical_hour != hour_key and body != state.last_critical_body:
                if self._deliver(f"Critical air quality: {room.name}", body, room.id, alert=True):
                    state.critical_hour = hour_key
                    state.last_critical_body = body
                    sent += 1

        if not room.window_open:
            # Session over: transition state is dropped, the last body is kept
            state.last_remaining = None
            state.was_too_cold = False
            return sent

        # (b) Venting status
        remaining = analysis.remaining_minutes
        too_cold = room.temperature < limits.temp_min

        if too_cold:
            body = f"{ICON_COLD} Close immediately: {room.temperature:.1f}°C"
        elif remaining is not None and remaining > 0:
            body = f"{ICON_VENTING} {remaining} min remaining · {_reason(room, analysis)}"
        elif remaining is not None:
            body = f"{ICON_TIME_UP} Time's up, close the window · {_reason(room, analysis)}"
        else:
            body = f"{ICON_VENTING} Window open · {_reason(room, analysis)}"

        escalate = (too_cold and not state.was_too_cold) or (
            state.last_remaining is not None
            and state.last_remaining > 0
            and remaining is not None
            and remaining <= 0
        )

        tag = session.key if session is not None else room.id
        if body != state.last_body:
            if not self._deliver(room.name, body, tag, escalate):
                # Transition state is kept so the next tick escalates again
                return sent
            state.last_body = body
            sent += 1

        state.last_remaining = remaining
        state.was_too_cold = too_cold
        return sent

    def _deliver(self, title: str, body: str, tag: str, alert: bool) -> bool:
        try:
            self.sink.notify(
                title,
                body=body,
                tag=tag,
                vibration_pattern=ALERT_VIBRATION if alert else [],
                require_reattention=alert,
            )
        except Exception as e:
            # Delivery failures must not stop the poll loop
            logger.error(f"Failed to send notification '{title}': {e}")
            return False
        return True
