"""Session records and derived analytics types."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass, replace
from datetime import datetime
from enum import Enum


class InvalidSessionError(ValueError):
    """A session record is missing a required part (statistics, target, ...)."""


# Shared ordering for impact and priority: higher rank sorts first
_RANKS = {"high": 3, "medium": 2, "low": 1}


class Impact(str, Enum):
    """How strongly an insight affects imaging results."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _RANKS[self.value]


class Priority(str, Enum):
    """How urgently a recommendation should be acted on."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _RANKS[self.value]


class TrendDirection(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class InsightType(str, Enum):
    EQUIPMENT = "equipment"
    WEATHER = "weather"
    TARGET = "target"
    QUALITY = "quality"


class RecommendationCategory(str, Enum):
    EQUIPMENT = "equipment"
    TECHNIQUE = "technique"
    PLANNING = "planning"


def to_plain(value):
    """Convert dataclasses, enums and datetimes into JSON-friendly values."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


# --- Input records -----------------------------------------------------------


@dataclass(frozen=True)
class Coordinates:
    ra: float
    dec: float


@dataclass(frozen=True)
class Target:
    """The object imaged during a session."""

    id: str
    name: str
    type: str  # 'galaxy', 'nebula', 'cluster', ...
    coordinates: Coordinates | None = None
    magnitude: float | None = None


@dataclass(frozen=True)
class EquipmentProfile:
    """Equipment used for a session. `name` is the grouping key for analytics."""

    name: str
    id: str | None = None
    description: str | None = None
    settings: dict = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class Conditions:
    """Environmental conditions. Fields are None when not recorded."""

    temperature: float | None = None
    humidity: float | None = None
    wind_speed: float | None = None
    cloud_cover: float | None = None  # percent, 0-100
    seeing: float | None = None  # arc-seconds, lower is better
    transparency: float | None = None  # 0-10, higher is better
    moon_phase: float | None = None  # 0-1


@dataclass(frozen=True)
class FrameQuality:
    hfr: float = 0.0
    snr: float = 0.0
    stars: int = 0
    background: float = 0.0
    noise: float = 0.0


@dataclass(frozen=True)
class ImageFrame:
    """A single captured frame and its measured quality."""

    filename: str
    timestamp: datetime | None = None
    exposure_time: float = 0.0  # seconds
    gain: int | None = None
    temperature: float | None = None
    filter: str | None = None
    quality: FrameQuality = field(default_factory=FrameQuality)


@dataclass(frozen=True)
class SessionStatistics:
    """Session totals as reported by the acquisition software.

    Values are not validated here: NaN, infinities and negative numbers are
    clamped at the point of use by the scorer.
    """

    total_frames: int = 0
    accepted_frames: int = 0
    rejected_frames: int = 0
    total_integration: float = 0.0  # minutes
    average_hfr: float = 0.0
    average_snr: float = 0.0
    guide_rms: float = 0.0
    drift_rate: float = 0.0


@dataclass(frozen=True)
class SessionIssue:
    type: str  # 'tracking', 'weather', 'focus', ...
    severity: str
    description: str = ""
    timestamp: datetime | None = None
    resolved: bool = False


@dataclass(frozen=True)
class ImagingSession:
    """One recorded imaging session.

    Immutable once constructed. Build variants with `dataclasses.replace` or the
    `with_statistics` / `with_conditions` helpers. `images` and `issues` are
    stored as tuples so variants never share a mutable sequence.
    """

    id: str
    date: datetime
    duration: float  # minutes
    target: Target
    equipment: EquipmentProfile
    conditions: Conditions
    statistics: SessionStatistics
    images: tuple[ImageFrame, ...] = ()
    issues: tuple[SessionIssue, ...] = ()
    notes: str = ""

    def __post_init__(self):
        """Reject structurally incomplete sessions."""
        if not self.id:
            raise InvalidSessionError("Session id cannot be empty")
        if not isinstance(self.date, datetime):
            raise InvalidSessionError(f"Session {self.id}: date must be a datetime")
        for name in ("target", "equipment", "conditions", "statistics"):
            if getattr(self, name) is None:
                raise InvalidSessionError(f"Session {self.id}: missing {name}")
        object.__setattr__(self, "images", tuple(self.images))
        object.__setattr__(self, "issues", tuple(self.issues))

    def with_statistics(self, **changes) -> ImagingSession:
        """Return a copy with some statistics fields replaced."""
        return replace(self, statistics=replace(self.statistics, **changes))

    def with_conditions(self, **changes) -> ImagingSession:
        """Return a copy with some condition fields replaced."""
        return replace(self, conditions=replace(self.conditions, **changes))

    def to_dict(self) -> dict:
        return to_plain(self)


# --- Derived results ---------------------------------------------------------


@dataclass
class SessionInsight:
    type: InsightType
    title: str
    description: str
    impact: Impact

    def to_dict(self) -> dict:
        return to_plain(self)


@dataclass
class Recommendation:
    category: RecommendationCategory
    title: str
    description: str
    priority: Priority

    def to_dict(self) -> dict:
        return to_plain(self)


@dataclass
class SessionMetrics:
    efficiency: float
    integration_time: float
    total_frames: int
    accepted_frames: int
    frame_acceptance_rate: float


@dataclass
class SessionAnalysis:
    """Quality assessment of a single session."""

    session_id: str
    overall_score: float
    metrics: SessionMetrics
    insights: list[SessionInsight] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)
    # Component sub-scores (0-100) that make up overall_score
    scores: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return to_plain(self)


@dataclass
class AnalyticsMetrics:
    """Summary statistics across a session collection."""

    total_sessions: int = 0
    total_imaging_time: float = 0.0  # minutes
    average_session_duration: float = 0.0  # minutes
    total_frames: int = 0
    average_hfr: float = 0.0
    average_snr: float = 0.0
    equipment_usage: dict[str, int] = field(default_factory=dict)
    target_types: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return to_plain(self)


@dataclass
class TrendResult:
    hfr_trend: TrendDirection = TrendDirection.STABLE
    snr_trend: TrendDirection = TrendDirection.STABLE
    overall_trend: TrendDirection = TrendDirection.STABLE

    def to_dict(self) -> dict:
        return to_plain(self)


@dataclass
class Patterns:
    """Cross-session groupings.

    seasonal: season -> aggregates, weather: variable -> min/max/average,
    equipment: equipment name -> aggregates, temporal: {'hourly', 'monthly'}
    -> bucket -> session count.
    """

    seasonal: dict[str, dict] = field(default_factory=dict)
    weather: dict[str, dict] = field(default_factory=dict)
    equipment: dict[str, dict] = field(default_factory=dict)
    temporal: dict[str, dict[int, int]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return to_plain(self)


@dataclass
class MetricComparison:
    value1: float | None
    value2: float | None
    better: str | None  # winning equipment name, None on a draw
    lower_is_better: bool = False


@dataclass
class EquipmentComparison:
    equipment1: str
    equipment2: str
    metrics: dict[str, MetricComparison] = field(default_factory=dict)
    winner: str = ""

    def to_dict(self) -> dict:
        return to_plain(self)
