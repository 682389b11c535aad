"""
Room adjacency used for cross-ventilation and ventilation-assist detection.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .models import RoomReading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TopologyResult:
    """Cross-ventilation state of a room relative to its neighbours."""

    is_cross_ventilating: bool = False
    assist_neighbor: Optional[RoomReading] = None  # Closed room with a fan
    window_neighbor: Optional[RoomReading] = None  # Closed window worth opening too


class RoomTopology:
    """Static adjacency graph, loaded once from configuration.

    Neighbour lists keep their declared order; that order decides which
    neighbour is named in a recommendation.
    """

    def __init__(self, edges: dict[str, list[str]] | None = None, symmetric: bool = True):
        self._neighbors: dict[str, list[str]] = {}
        for room_id, neighbors in (edges or {}).items():
            for neighbor in neighbors:
                self._add(room_id, neighbor)

        # Mirrored edges go after the declared ones
        if symmetric:
            for room_id, neighbors in (edges or {}).items():
                for neighbor in neighbors:
                    self._add(neighbor, room_id)

        logger.debug(f"Room topology: {self._neighbors}")

    def _add(self, room_id: str, neighbor: str) -> None:
        if room_id == neighbor:
            return
        bucket = self._neighbors.setdefault(room_id, [])
        if neighbor not in bucket:
            bucket.append(neighbor)

    def neighbors(self, room_id: str) -> list[str]:
        return list(self._neighbors.get(room_id, []))

    def to_dict(self) -> dict[str, list[str]]:
        return {room_id: list(n) for room_id, n in self._neighbors.items()}

    def detect(self, room_id: str, rooms: dict[str, RoomReading]) -> TopologyResult:
        """Check a room's neighbours in the current snapshot."""
        room = rooms.get(room_id)
        if room is None:
            return TopologyResult()

        neighbors = [rooms[n] for n in self._neighbors.get(room_id, []) if n in rooms]

        is_cross = room.window_open and any(n.window_open for n in neighbors)
        assist = next(
            (n for n in neighbors if n.has_ventilation_assist and not n.window_open),
            None,
        )
        window = next(
            (n for n in neighbors if n.has_window and not n.window_open),
            None,
        )
        return TopologyResult(
            is_cross_ventilating=is_cross,
            assist_neighbor=assist,
            window_neighbor=window,
        )
