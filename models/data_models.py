"""
data_models.py - Timeline Data Structures
==========================================

Immutable inputs (duties, rest days, sleep estimates) and the positioned
bars the layout engine produces for the chronogram views.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Dict, Any, Tuple
from enum import Enum


# ============================================================================
# ENUMS
# ============================================================================

class ReferenceFrame(Enum):
    """Coordinate system the chronogram rows/columns are expressed in"""
    HOME_BASE = "home_base"   # Rows = calendar days, hours in home-base local time
    UTC = "utc"               # Rows = UTC calendar days, hours in Zulu
    ELAPSED = "elapsed"       # Rows = 24h periods since month start (row 0)


class BarKind(Enum):
    """Tag for the Bar variant"""
    DUTY = "duty"
    SLEEP = "sleep"
    WOCL = "wocl"
    NADIR = "nadir"
    INFLIGHT_REST = "inflight_rest"
    FDP_LIMIT = "fdp_limit"


class Lane(Enum):
    """Vertical lane within a row; bars only compete with bars of the same lane"""
    SLEEP = "sleep"
    DUTY = "duty"
    INFLIGHT = "inflight"
    BACKGROUND = "background"


class SegmentKind(Enum):
    CHECKIN = "checkin"
    FLIGHT = "flight"
    GROUND = "ground"
    TRAINING = "training"   # Simulator or ground training, no flight legs


class FlightPhase(Enum):
    """Flight phases for the zoomed-in segment breakdown"""
    TAKEOFF = "takeoff"
    CLIMB = "climb"
    CRUISE = "cruise"
    DESCENT = "descent"
    APPROACH = "approach"
    LANDING = "landing"


class SleepSource(Enum):
    """Which fallback path resolved a sleep window"""
    PRECOMPUTED = "precomputed"   # Backend day/hour pair in home-base TZ
    ISO = "iso"                   # ISO-8601 start/end timestamps
    CLOCK = "clock"               # Plain HH:MM start/end
    HEURISTIC = "heuristic"       # Estimated back from duty start


# ============================================================================
# INPUT RECORDS
# ============================================================================

@dataclass(frozen=True)
class FlightLeg:
    """Single flight sector as delivered by the analysis backend"""
    flight_number: str
    departure: str                              # IATA code
    arrival: str
    departure_time_local: Optional[str] = None  # HH:MM in home-base TZ
    arrival_time_local: Optional[str] = None
    departure_time_utc: Optional[str] = None    # HH:MMZ
    arrival_time_utc: Optional[str] = None
    performance: float = 0.0                    # Backend per-leg performance (0-100)
    block_hours: float = 0.0
    activity_code: Optional[str] = None         # Roster code, e.g. 'DH', 'IR'
    is_deadhead: bool = False


@dataclass(frozen=True)
class SleepTiming:
    """
    Up to three encodings of one sleep period.

    Older backends only send the HH:MM pair, newer ones drop it in favour of
    the ISO timestamps and the precomputed home-base day/hour values.
    """
    start_time: Optional[str] = None    # HH:MM
    end_time: Optional[str] = None
    start_iso: Optional[str] = None     # ISO-8601 with date
    end_iso: Optional[str] = None
    start_day: Optional[int] = None     # Day of month (1-31), home-base TZ
    start_hour: Optional[float] = None  # Decimal hour (0-24), home-base TZ
    end_day: Optional[int] = None
    end_hour: Optional[float] = None

    @property
    def has_precomputed(self) -> bool:
        return None not in (self.start_day, self.start_hour, self.end_day, self.end_hour)


@dataclass(frozen=True)
class SleepEstimate:
    """Backend strategic sleep estimate attached to a duty"""
    total_sleep_hours: float
    effective_sleep_hours: float
    sleep_efficiency: float            # 0-1
    sleep_strategy: str                # 'anchor', 'split', 'nap', 'recovery', ...
    wocl_overlap_hours: float = 0.0
    warnings: Tuple[str, ...] = ()
    timing: SleepTiming = field(default_factory=SleepTiming)
    quality_factors: Optional[Dict[str, float]] = None
    confidence: Optional[float] = None


@dataclass(frozen=True)
class SleepBlockRecord:
    """One sleep block on a rest day"""
    timing: SleepTiming
    effective_hours: float
    quality_factor: float
    duration_hours: float = 0.0
    sleep_type: str = "main"           # 'main', 'nap', 'anchor'
    quality_factors: Optional[Dict[str, float]] = None


@dataclass(frozen=True)
class RestDayRecord:
    """Rest day (no duties) with its estimated sleep blocks"""
    date: date
    sleep_blocks: Tuple[SleepBlockRecord, ...]
    strategy_type: str = "recovery"
    total_sleep_hours: float = 0.0
    effective_sleep_hours: float = 0.0
    quality_factors: Optional[Dict[str, float]] = None


@dataclass(frozen=True)
class InFlightRestBlock:
    """Crew rest period on an augmented / ULR sector"""
    duration_hours: float
    effective_sleep_hours: float
    start_utc: Optional[str] = None      # ISO-8601 UTC
    end_utc: Optional[str] = None
    start_day: Optional[int] = None      # Home-base TZ
    start_hour: Optional[float] = None
    end_day: Optional[int] = None
    end_hour: Optional[float] = None
    is_during_wocl: bool = False
    crew_set: Optional[str] = None


# Duty types drawn from report/release times instead of flight legs
TRAINING_DUTY_TYPES = frozenset({"simulator", "ground_training", "training"})


@dataclass(frozen=True)
class DutyRecord:
    """Complete duty period with backend fatigue aggregates"""
    duty_id: str
    date: date
    legs: Tuple[FlightLeg, ...]
    report_time_local: Optional[str] = None   # HH:MM home-base TZ
    release_time_local: Optional[str] = None
    report_time_utc: Optional[str] = None     # ISO-8601 UTC
    release_time_utc: Optional[str] = None
    duty_type: str = "flight"                 # 'flight', 'simulator', 'ground_training'
    training_code: Optional[str] = None

    # Performance metrics
    avg_performance: float = 0.0
    min_performance: Optional[float] = None
    landing_performance: Optional[float] = None

    # Fatigue metrics
    sleep_debt: float = 0.0
    wocl_hours: float = 0.0
    prior_sleep: float = 0.0

    sleep_estimate: Optional[SleepEstimate] = None

    # Circadian hints: absolute value wins over the incremental one
    circadian_phase_shift: Optional[float] = None
    phase_shift_delta: Optional[float] = None

    # EASA FDP limit and augmented crew data
    max_fdp_hours: Optional[float] = None
    inflight_rest_blocks: Tuple[InFlightRestBlock, ...] = ()

    @property
    def is_training(self) -> bool:
        return self.duty_type in TRAINING_DUTY_TYPES


@dataclass(frozen=True)
class DetailPoint:
    """Instantaneous high-resolution sample from the per-duty timeline"""
    timestamp_iso: str
    performance: float


@dataclass(frozen=True)
class DutyDetailTimeline:
    """On-demand 5-minute resolution timeline for one duty"""
    duty_id: str
    points: Tuple[DetailPoint, ...]


# ============================================================================
# ENGINE OUTPUT
# ============================================================================

@dataclass(frozen=True)
class PhaseSlice:
    """Share of a flight segment spent in one phase"""
    phase: FlightPhase
    performance: float
    width_percent: float


@dataclass(frozen=True)
class SegmentBar:
    """Sub-interval of a duty bar (check-in, flight, ground, training)"""
    kind: SegmentKind
    start_hour: float
    end_hour: float
    performance: float
    flight_number: Optional[str] = None
    departure: Optional[str] = None
    arrival: Optional[str] = None
    phases: Tuple[PhaseSlice, ...] = ()
    activity_code: Optional[str] = None
    is_deadhead: bool = False
    training_code: Optional[str] = None

    @property
    def duration_hours(self) -> float:
        return self.end_hour - self.start_hour


@dataclass(frozen=True)
class DetailSummary:
    """High-resolution performance summary for the part of a duty in one bar"""
    point_count: int
    min_performance: float
    mean_performance: float
    min_performance_hour: float


@dataclass(frozen=True)
class Bar:
    """
    Positioned item on the row-based 24h grid.

    Interval variants satisfy 0 <= start_hour < end_hour <= 24.
    Marker variants are instants (start_hour == end_hour).
    """
    row: int
    start_hour: float
    end_hour: float
    source: Any = None
    is_overflow_start: bool = False
    is_overflow_continuation: bool = False

    kind = None
    lane = Lane.BACKGROUND
    is_instant = False

    def __post_init__(self):
        assert 0 <= self.start_hour <= 24 and 0 <= self.end_hour <= 24, \
            f"Bar hours out of range: {self.start_hour}-{self.end_hour}"
        if self.is_instant:
            assert self.start_hour == self.end_hour, \
                f"Marker must be an instant: {self.start_hour}-{self.end_hour}"
        else:
            assert self.end_hour > self.start_hour, \
                f"Empty bar: {self.start_hour}-{self.end_hour}"

    @property
    def duration_hours(self) -> float:
        return self.end_hour - self.start_hour

    def overlaps(self, other: 'Bar', tolerance: float = 1e-6) -> bool:
        """Touching bars (end == start) do not overlap"""
        return (
            self.start_hour < other.end_hour - tolerance
            and other.start_hour < self.end_hour - tolerance
        )


@dataclass(frozen=True)
class DutyBar(Bar):
    segments: Tuple[SegmentBar, ...] = ()
    detail: Optional[DetailSummary] = None

    kind = BarKind.DUTY
    lane = Lane.DUTY


@dataclass(frozen=True)
class SleepBar(Bar):
    recovery_score: float = 0.0
    effective_sleep: float = 0.0
    sleep_efficiency: float = 0.0
    sleep_strategy: str = ""
    is_pre_duty: bool = False
    resolved_by: Optional[SleepSource] = None
    original_start_hour: Optional[float] = None
    original_end_hour: Optional[float] = None
    sleep_start_zulu: Optional[str] = None
    sleep_end_zulu: Optional[str] = None
    quality_factors: Optional[Dict[str, float]] = None
    wocl_overlap_hours: float = 0.0

    kind = BarKind.SLEEP
    lane = Lane.SLEEP

    @property
    def has_quality_detail(self) -> bool:
        return bool(self.quality_factors)


@dataclass(frozen=True)
class InFlightRestBar(Bar):
    duration_hours_total: float = 0.0
    effective_sleep_hours: float = 0.0
    is_during_wocl: bool = False
    crew_set: Optional[str] = None

    kind = BarKind.INFLIGHT_REST
    lane = Lane.INFLIGHT


@dataclass(frozen=True)
class WoclBand(Bar):
    phase_shift: float = 0.0

    kind = BarKind.WOCL


@dataclass(frozen=True)
class NadirMarker(Bar):
    phase_shift: float = 0.0

    kind = BarKind.NADIR
    is_instant = True

    @property
    def hour(self) -> float:
        return self.start_hour


@dataclass(frozen=True)
class FdpLimitMarker(Bar):
    max_fdp_hours: float = 0.0

    kind = BarKind.FDP_LIMIT
    lane = Lane.DUTY
    is_instant = True

    @property
    def hour(self) -> float:
        return self.start_hour


@dataclass(frozen=True)
class CircadianState:
    """
    Biological clock phase shift at one grid row
    Positive = body clock shifted east of home base
    """
    row: int
    phase_shift_hours: float

    def __post_init__(self):
        assert -12 <= self.phase_shift_hours <= 12, \
            f"Phase shift out of range: {self.phase_shift_hours}"


@dataclass
class TimelineLayout:
    """Everything the rendering layer needs for one month in one frame"""
    frame: ReferenceFrame
    month_start: date
    first_row: int
    last_row: int
    duty_bars: List[DutyBar] = field(default_factory=list)
    sleep_bars: List[SleepBar] = field(default_factory=list)
    inflight_rest_bars: List[InFlightRestBar] = field(default_factory=list)
    fdp_markers: List[FdpLimitMarker] = field(default_factory=list)
    wocl_bands: List[WoclBand] = field(default_factory=list)
    nadir_markers: List[NadirMarker] = field(default_factory=list)
    circadian_states: List[CircadianState] = field(default_factory=list)
    row_warnings: Dict[int, List[str]] = field(default_factory=dict)

    @property
    def rows(self) -> range:
        return range(self.first_row, self.last_row + 1)

    @property
    def bars(self) -> List[Bar]:
        """All bars in one list, ordered by row then start hour then lane"""
        lane_order = {Lane.BACKGROUND: 0, Lane.SLEEP: 1, Lane.INFLIGHT: 2, Lane.DUTY: 3}
        items: List[Bar] = [
            *self.wocl_bands, *self.nadir_markers, *self.sleep_bars,
            *self.duty_bars, *self.inflight_rest_bars, *self.fdp_markers,
        ]
        return sorted(items, key=lambda b: (b.row, b.start_hour, lane_order[b.lane]))

    def bars_for_row(self, row: int) -> List[Bar]:
        return [b for b in self.bars if b.row == row]
