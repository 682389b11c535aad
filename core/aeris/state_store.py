"""
Durable key-value state.

Small JSON document holding the comfort limit profile, active sessions,
learned cooling rates and timer extensions so they survive restarts.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

STATE_VERSION = 1

KEY_COMFORT_LIMITS = "comfort_limits"
KEY_SESSIONS = "sessions"
KEY_LEARNING = "learning"
KEY_TIMER_EXTENSIONS = "timer_extensions"


class StateStore:
    """JSON file store. Missing or corrupt data reads as "no data yet"."""

    def __init__(self, path: str | os.PathLike | None):
        self.path = Path(path) if path else None
        self._data: dict[str, Any] = {}
        self.lock = threading.Lock()

    def load(self) -> None:
        """Read the state file. Never raises."""
        if self.path is None or not self.path.exists():
            self._data = {}
            return

        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"State file {self.path} unreadable, starting empty: {e}")
            self._data = {}
            return

        if not isinstance(data, dict):
            logger.warning(f"State file {self.path} has unexpected format, starting empty")
            self._data = {}
            return

        self._data = data
        logger.info(f"Loaded state from {self.path}")

    def get(self, key: str) -> dict:
        """Stored mapping for a key; empty when absent or of the wrong type."""
        value = self._data.get(key)
        return value if isinstance(value, dict) else {}

    def set(self, key: str, value: dict) -> None:
        self._data[key] = value

    def save(self) -> None:
        """Atomically write the state file.

        Raises:
            OSError: If the file cannot be written
        """
        if self.path is None:
            return

        payload = dict(self._data, version=STATE_VERSION)
        temp_path = self.path.with_suffix(f"{self.path.suffix}.tmp")
        with self.lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with temp_path.open("w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2, ensure_ascii=False)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_path, self.path)
            except OSError as e:
                logger.error(f"Failed to write state to {self.path}: {e}")
                if temp_path.exists():
                    temp_path.unlink()
                raise
