"""
Time Coordinate Resolution
==========================

Maps the three time encodings the backend sends (home-base "HH:MM",
UTC-suffixed "HH:MMZ", ISO-8601 timestamps) onto (row, hour) grid
coordinates for one reference frame:

- HomeBaseResolver: rows are calendar days of the displayed month
- UtcResolver: rows are UTC calendar days, hours are Zulu
- ElapsedResolver: row 0 starts at local midnight of the first day of the month

ISO timestamps are read as written in the local frames. Running them through
the viewer's timezone would move blocks onto the wrong row/column. The UTC
frame normalizes any offset to Zulu first.
"""

import calendar
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

import pytz

from models.data_models import DutyRecord, FlightLeg, ReferenceFrame


_CLOCK_RE = re.compile(r'^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*Z?\s*$', re.IGNORECASE)
_ISO_RE = re.compile(r'^\s*(\d{4})-(\d{2})-(\d{2})[T ](\d{2}):(\d{2})')


# ============================================================================
# PARSING HELPERS
# ============================================================================

def parse_clock(value: Optional[str]) -> Optional[float]:
    """'HH:MM' or 'HH:MMZ' -> decimal hours, None if unparseable"""
    if not value or not isinstance(value, str):
        return None
    match = _CLOCK_RE.match(value)
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes >= 60 or hours > 24 or (hours == 24 and minutes > 0):
        return None
    return hours + minutes / 60


def parse_iso_literal(value: Optional[str]) -> Optional[Tuple[date, float]]:
    """
    Calendar date and decimal hour exactly as written in an ISO string.

    '2025-03-05T22:30:00+03:00' -> (2025-03-05, 22.5). The offset is ignored.
    """
    if not value or not isinstance(value, str):
        return None
    match = _ISO_RE.match(value)
    if not match:
        return None
    year, month, day, hours, minutes = (int(g) for g in match.groups())
    if hours > 23 or minutes > 59:
        return None
    try:
        return date(year, month, day), hours + minutes / 60
    except ValueError:
        return None


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Timezone-aware datetime (naive strings are taken as UTC)"""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = pytz.utc.localize(parsed)
    return parsed


def iso_to_zulu(value: Optional[str]) -> Optional[str]:
    """ISO timestamp -> 'HH:MMZ' in UTC"""
    parsed = parse_iso_datetime(value)
    if parsed is None:
        return None
    return parsed.astimezone(pytz.utc).strftime('%H:%MZ')


def to_utc_iso(value: Optional[str]) -> Optional[str]:
    """Any ISO timestamp -> naive 'YYYY-MM-DDTHH:MM' in UTC"""
    parsed = parse_iso_datetime(value)
    if parsed is None:
        return None
    return parsed.astimezone(pytz.utc).strftime('%Y-%m-%dT%H:%M')


def utc_offset_from_leg(leg: FlightLeg) -> Optional[float]:
    """Home-base UTC offset implied by a leg's local and Zulu departure times"""
    local = parse_clock(leg.departure_time_local)
    utc = parse_clock(leg.departure_time_utc)
    if local is None or utc is None:
        return None
    diff = local - utc
    if diff > 14:
        diff -= 24
    elif diff < -12:
        diff += 24
    return diff


def format_hours(hours: float) -> str:
    """Decimal hours -> 'HH:MM', wrapping values outside 0-24"""
    total_minutes = int(round(hours * 60)) % (24 * 60)
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


@dataclass(frozen=True)
class TimeCoordinate:
    """Position on the grid: row index plus decimal hour within the row"""
    row: int
    hour: float

    @property
    def absolute_hours(self) -> float:
        return self.row * 24 + self.hour

    def shifted(self, hours: float) -> 'TimeCoordinate':
        total = self.absolute_hours + hours
        row = math.floor(total / 24)
        return TimeCoordinate(row, total - row * 24)


# ============================================================================
# RESOLVERS
# ============================================================================

class TimeCoordinateResolver:
    """
    Base strategy. Subclasses pick which leg/report fields they read and
    how dates map to rows; everything downstream only sees coordinates.
    """

    frame: ReferenceFrame = None
    row_offset = 1                      # Row of the first day of the month

    def __init__(self, month: date):
        self.month_start = month.replace(day=1)
        self.days_in_month = calendar.monthrange(self.month_start.year, self.month_start.month)[1]
        prev_month_end = self.month_start - timedelta(days=1)
        self.days_in_prev_month = prev_month_end.day
        next_month_start = self.month_start + timedelta(days=self.days_in_month)
        self.days_in_next_month = calendar.monthrange(next_month_start.year, next_month_start.month)[1]

    # -- rows -------------------------------------------------------------

    @property
    def first_row(self) -> int:
        return self.row_offset

    @property
    def last_row(self) -> int:
        return self.row_offset + self.days_in_month - 1

    def is_visible(self, row: int) -> bool:
        return self.first_row <= row <= self.last_row

    def row_for_date(self, day: date) -> int:
        return (day - self.month_start).days + self.row_offset

    def row_for_day_of_month(self, day: int, anchor_row: Optional[int] = None) -> int:
        """
        Day-of-month -> row. The day may belong to the previous or next
        month; the candidate nearest to the anchor row wins.
        """
        current = day - 1 + self.row_offset
        if anchor_row is None:
            return current
        candidates = []
        if day <= self.days_in_prev_month:
            candidates.append(current - self.days_in_prev_month)
        if day <= self.days_in_month:
            candidates.append(current)
        if day <= self.days_in_next_month:
            candidates.append(current + self.days_in_month)
        if not candidates:
            return current
        return min(candidates, key=lambda row: abs(row - anchor_row))

    # -- coordinates ------------------------------------------------------

    def resolve_clock(self, value: Optional[str], row: int) -> Optional[TimeCoordinate]:
        hour = parse_clock(value)
        if hour is None:
            return None
        return TimeCoordinate(row, hour)

    def resolve_iso(self, value: Optional[str]) -> Optional[TimeCoordinate]:
        parsed = parse_iso_literal(value)
        if parsed is None:
            return None
        day, hour = parsed
        return TimeCoordinate(self.row_for_date(day), hour)

    def resolve_day_hour(
        self,
        day: Optional[int],
        hour: Optional[float],
        anchor_row: Optional[int] = None
    ) -> Optional[TimeCoordinate]:
        """Precomputed home-base (day-of-month, hour) pair"""
        if day is None or hour is None:
            return None
        if not (1 <= day <= 31) or not (0 <= hour <= 24):
            return None
        return TimeCoordinate(self.row_for_day_of_month(day, anchor_row), float(hour))

    def resolve_utc_instant(self, value: Optional[str], utc_offset_hours: float = 0.0) -> Optional[TimeCoordinate]:
        """UTC instant on this grid; local frames shift it by the home-base offset"""
        coordinate = self.resolve_iso(to_utc_iso(value))
        if coordinate is None:
            return None
        return coordinate.shifted(utc_offset_hours)

    # -- duty fields ------------------------------------------------------

    def leg_departure(self, leg: FlightLeg) -> Optional[float]:
        return parse_clock(leg.departure_time_local)

    def leg_arrival(self, leg: FlightLeg) -> Optional[float]:
        return parse_clock(leg.arrival_time_local)

    def duty_row(self, duty: DutyRecord) -> int:
        """Row of the duty's first departure"""
        return self.row_for_date(duty.date)

    def report_anchor(self, duty: DutyRecord) -> Optional[TimeCoordinate]:
        """Report time carrying its own date; the check-in then anchors the duty"""
        return None

    def report_hour(self, duty: DutyRecord) -> Optional[float]:
        """Report time without a date, placed relative to the first departure"""
        return parse_clock(duty.report_time_local)

    def release_anchor(self, duty: DutyRecord) -> Optional[TimeCoordinate]:
        return None

    def release_hour(self, duty: DutyRecord) -> Optional[float]:
        return parse_clock(duty.release_time_local)


class HomeBaseResolver(TimeCoordinateResolver):
    """Rows = calendar days (1-31), hours in home-base local time"""
    frame = ReferenceFrame.HOME_BASE


class UtcResolver(TimeCoordinateResolver):
    """Rows = UTC calendar days (1-31), hours in Zulu"""
    frame = ReferenceFrame.UTC

    def leg_departure(self, leg: FlightLeg) -> Optional[float]:
        return parse_clock(leg.departure_time_utc)

    def leg_arrival(self, leg: FlightLeg) -> Optional[float]:
        return parse_clock(leg.arrival_time_utc)

    def resolve_day_hour(self, day, hour, anchor_row=None) -> Optional[TimeCoordinate]:
        # Home-base pairs cannot be placed on a UTC grid without the offset
        return None

    def resolve_iso(self, value: Optional[str]) -> Optional[TimeCoordinate]:
        return super().resolve_iso(to_utc_iso(value))

    def resolve_utc_instant(self, value, utc_offset_hours=0.0) -> Optional[TimeCoordinate]:
        return self.resolve_iso(value)

    def resolve_clock(self, value, row) -> Optional[TimeCoordinate]:
        if value and value.strip().upper().endswith('Z'):
            return super().resolve_clock(value, row)
        return None

    def report_anchor(self, duty: DutyRecord) -> Optional[TimeCoordinate]:
        return self.resolve_iso(duty.report_time_utc)

    def report_hour(self, duty: DutyRecord) -> Optional[float]:
        return None

    def release_anchor(self, duty: DutyRecord) -> Optional[TimeCoordinate]:
        return self.resolve_iso(duty.release_time_utc)

    def release_hour(self, duty: DutyRecord) -> Optional[float]:
        return None


class ElapsedResolver(TimeCoordinateResolver):
    """
    Continuous elapsed time from local midnight on the first of the month.

    Row r covers elapsed hours [24r, 24r + 24).
    """
    frame = ReferenceFrame.ELAPSED
    row_offset = 0

    def from_elapsed(self, elapsed_hours: float) -> TimeCoordinate:
        row = int(elapsed_hours // 24)
        return TimeCoordinate(row, elapsed_hours - row * 24)

    def elapsed_hours(self, day: date, local_hour: float) -> float:
        return (day - self.month_start).days * 24 + local_hour

    def resolve_iso(self, value: Optional[str]) -> Optional[TimeCoordinate]:
        parsed = parse_iso_literal(value)
        if parsed is None:
            return None
        return self.from_elapsed(self.elapsed_hours(*parsed))


_RESOLVERS = {
    ReferenceFrame.HOME_BASE: HomeBaseResolver,
    ReferenceFrame.UTC: UtcResolver,
    ReferenceFrame.ELAPSED: ElapsedResolver,
}


def resolver_for(frame: ReferenceFrame, month: date) -> TimeCoordinateResolver:
    """Build the resolver strategy for a reference frame"""
    try:
        return _RESOLVERS[frame](month)
    except KeyError:
        raise ValueError(f"Unsupported reference frame: {frame!r}")
