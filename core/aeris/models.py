"""
Aeris Data Models

Readings, sessions and analysis results shared across the engine.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

# Room categories
LIVING = "living"
SLEEPING = "sleeping"
BATHROOM = "bathroom"
STORAGE = "storage"
OTHER = "other"

ROOM_CATEGORIES = (LIVING, SLEEPING, BATHROOM, STORAGE, OTHER)


@dataclass(frozen=True)
class RoomReading:
    """Latest known state of a room. Replaced wholesale on every poll."""

    id: str
    name: str
    category: str
    temperature: float
    humidity: float
    has_co2: bool = False
    has_window: bool = False
    has_ventilation_assist: bool = False
    co2: Optional[float] = None
    window_open: bool = False
    window_changed_at: Optional[datetime] = None
    target_temperature: Optional[float] = None
    hvac_mode: Optional[str] = None

    def with_changes(self, **changes) -> "RoomReading":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class OutsideReading:
    """Outdoor weather station reading."""

    temperature: float
    humidity: float


@dataclass(frozen=True)
class Issue:
    """A single detected comfort problem."""

    dimension: str  # "temp", "humidity" or "co2"
    status: str  # "low" or "high"
    severity: str  # "warning" or "critical"
    message: str


@dataclass
class VentilationSession:
    """One continuous window-open interval of a room."""

    room_id: str
    start_time: datetime
    start_temp: float
    start_humidity: float
    rebaselined: bool = False  # Started mid-session after a restart

    @property
    def key(self) -> str:
        """Key that ties extensions and notifications to this session."""
        return f"{self.room_id}@{self.start_time.isoformat()}"

    def elapsed_minutes(self, now: datetime) -> float:
        return max(0.0, (now - self.start_time).total_seconds() / 60.0)

    def to_dict(self) -> dict:
        return {
            "room_id": self.room_id,
            "start_time": self.start_time.isoformat(),
            "start_temp": self.start_temp,
            "start_humidity": self.start_humidity,
            "rebaselined": self.rebaselined,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VentilationSession":
        return cls(
            room_id=str(data["room_id"]),
            start_time=datetime.fromisoformat(data["start_time"]),
            start_temp=float(data["start_temp"]),
            start_humidity=float(data["start_humidity"]),
            rebaselined=bool(data.get("rebaselined", False)),
        )


@dataclass
class LearningRecord:
    """Learned average cooling rate of a room while venting."""

    room_id: str
    sample_count: int = 0
    avg_rate: float = 0.0  # °C per minute


@dataclass(frozen=True)
class DurationEstimate:
    """How long a room's window should stay open."""

    base_minutes: int
    learned_factor: float
    is_learned: bool
    target_minutes: int
    extension_minutes: int
    total_target_minutes: int
    is_adaptive_estimate: bool
    elapsed_minutes: Optional[float] = None


@dataclass(frozen=True)
class AnalysisResult:
    """Comfort analysis of one room. Derived on every poll, never stored."""

    room_id: str
    score: int
    issues: list[Issue] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    dew_point_inside: float = 0.0
    is_cross_ventilating: bool = False
    total_target_minutes: int = 0
    is_night: bool = False
    is_adaptive_estimate: bool = False
    remaining_minutes: Optional[int] = None
    is_venting: bool = False  # A countdown recommendation is active

    @property
    def score_tier(self) -> str:
        if self.score >= 80:
            return "good"
        if self.score >= 60:
            return "fair"
        return "poor"

    @property
    def headline(self) -> Optional[str]:
        """Countdown if one is running, otherwise the first recommendation."""
        if self.is_venting:
            for rec in self.recommendations:
                if "more minutes" in rec:
                    return rec
        return self.recommendations[0] if self.recommendations else None

    def has_issue(self, dimension: str, status: Optional[str] = None) -> bool:
        return any(
            i.dimension == dimension and (status is None or i.status == status)
            for i in self.issues
        )
