"""
Automatic venting timer extensions.

When a room's venting timer has run out but humidity or CO2 are still too
high, the timer is extended in 5 minute steps, up to 30 minutes per session.
"""

import logging
from collections.abc import Iterable

from .models import Issue

logger = logging.getLogger(__name__)

EXTENSION_STEP_MINUTES = 5
MAX_EXTENSION_MINUTES = 30


def _needs_more_air(issues: Iterable[Issue]) -> bool:
    return any(
        (i.dimension == "humidity" and i.status == "high") or i.dimension == "co2"
        for i in issues
    )


class TimerExtensionPolicy:
    """Extension minutes per session key, with one-shot guards per step."""

    def __init__(self, extensions: dict[str, int] | None = None):
        self._extensions: dict[str, int] = dict(extensions or {})
        # session key -> totals that have already fired
        self._fired: dict[str, set[int]] = {
            key: set(range(EXTENSION_STEP_MINUTES, total + 1, EXTENSION_STEP_MINUTES))
            for key, total in self._extensions.items()
        }

    def minutes_for(self, session_key: str | None) -> int:
        if session_key is None:
            return 0
        return self._extensions.get(session_key, 0)

    def maybe_extend(
        self, session_key: str, remaining_minutes: int | None, issues: Iterable[Issue]
    ) -> bool:
        """Extend the session's timer if it ran out while air is still bad.

        Returns:
            True if an extension step fired
        """
        if remaining_minutes is None or remaining_minutes > 0:
            return False
        if not _needs_more_air(issues):
            return False

        current = self._extensions.get(session_key, 0)
        if current >= MAX_EXTENSION_MINUTES:
            return False

        new_total = min(current + EXTENSION_STEP_MINUTES, MAX_EXTENSION_MINUTES)
        fired = self._fired.setdefault(session_key, set())
        if new_total in fired:
            return False

        fired.add(new_total)
        self._extensions[session_key] = new_total
        logger.info(f"⏱️  Session {session_key}: venting extended to +{new_total} min")
        return True

    def discard_session(self, session_key: str) -> None:
        """Forget everything about a closed session."""
        self._extensions.pop(session_key, None)
        self._fired.pop(session_key, None)

    def prune(self, active_keys: Iterable[str]) -> None:
        """Drop entries of sessions that are no longer active."""
        active = set(active_keys)
        for key in [k for k in self._extensions if k not in active]:
            self.discard_session(key)
        for key in [k for k in self._fired if k not in active]:
            self._fired.pop(key, None)

    def to_dict(self) -> dict[str, int]:
        return dict(self._extensions)

    @classmethod
    def from_dict(cls, data: dict | None) -> "TimerExtensionPolicy":
        extensions = {}
        for key, raw in (data or {}).items():
            try:
                minutes = int(raw)
            except (TypeError, ValueError):
                logger.warning(f"Dropping corrupt timer extension for {key}")
                continue
            if minutes <= 0:
                continue
            # Keep persisted values on the 5 minute grid and within the cap
            minutes = min(MAX_EXTENSION_MINUTES, minutes - minutes % EXTENSION_STEP_MINUTES)
            if minutes:
                extensions[key] = minutes
        return cls(extensions)
