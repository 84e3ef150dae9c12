# analysis_parser.py - Backend analysis JSON -> layout records

"""
Analysis Payload Parser - Convert fatigue-analysis JSON into layout records

Handles:
- Schema drift between backend versions (home_tz vs plain fields,
  missing per-leg performance, legacy sleep fields)
- Home-base "HH:MM" derivation from UTC ISO timestamps (pytz)
- Zulu "HH:MMZ" derivation for the UTC chronogram
- Training duties (duty_type / training_code) and leg activity codes
- Rest-day sleep blocks and in-flight rest blocks
- Optional per-duty high-resolution timelines

Malformed duties are skipped with a logged warning; the rest of the
payload still parses.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import pytz

from core.time_coordinates import iso_to_zulu, parse_iso_datetime
from models.data_models import (
    DetailPoint, DutyDetailTimeline, DutyRecord, FlightLeg, InFlightRestBlock,
    RestDayRecord, SleepBlockRecord, SleepEstimate, SleepTiming
)

logger = logging.getLogger(__name__)

PAYLOAD_ERRORS = (KeyError, ValueError, TypeError, AttributeError)


@dataclass
class ParsedAnalysis:
    """Records extracted from one analysis payload"""
    duties: List[DutyRecord] = field(default_factory=list)
    rest_days: List[RestDayRecord] = field(default_factory=list)
    home_base_timezone: Optional[str] = None
    skipped_duty_ids: List[str] = field(default_factory=list)

    @property
    def month(self) -> Optional[date]:
        """First day of the month of the first duty"""
        if not self.duties:
            return None
        return min(d.date for d in self.duties).replace(day=1)


# ============================================================================
# FIELD HELPERS
# ============================================================================

def _first_present(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ''):
            return value
    return None


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _day_hour_pairs(raw: Dict[str, Any], prefix: str) -> Tuple[Optional[int], Optional[float], Optional[int], Optional[float]]:
    """
    Precomputed (start_day, start_hour, end_day, end_hour), home-TZ group first.

    prefix is 'sleep_' for sleep records and '' for in-flight rest blocks.
    """
    for suffix in ('_home_tz', ''):
        keys = [f"{prefix}{edge}_{part}{suffix}" for edge in ('start', 'end') for part in ('day', 'hour')]
        values = [raw.get(key) for key in keys]
        if None not in values:
            start_day, start_hour, end_day, end_hour = values
            return int(start_day), float(start_hour), int(end_day), float(end_hour)
    return None, None, None, None


def _quality_factors(value: Any) -> Optional[Dict[str, float]]:
    if not value:
        return None
    return {str(k): float(v) for k, v in value.items() if v is not None}


def interpolate_segment_performances(raw_duty: Dict[str, Any]) -> List[float]:
    """
    Per-leg performance when the backend only sends duty aggregates.

    Linear from an estimated start (avg + half the avg->landing drop) down
    to the landing performance, by elapsed fraction of the duty at each
    arrival. A single leg gets the duty average.
    """
    segments = raw_duty.get('segments') or []
    avg = float(raw_duty.get('avg_performance') or 0.0)
    if not segments:
        return []
    if len(segments) == 1:
        return [avg]

    report = parse_iso_datetime(raw_duty.get('report_time_utc'))
    if report is None:
        return [avg] * len(segments)

    elapsed_at_arrival = []
    cumulative = 0.0
    for seg in segments:
        arrival = parse_iso_datetime(seg.get('arrival_time'))
        if arrival is not None:
            elapsed_at_arrival.append((arrival - report).total_seconds() / 3600)
        else:
            cumulative += float(seg.get('block_hours') or 1.0) + 0.5
            elapsed_at_arrival.append(cumulative)

    landing = raw_duty.get('landing_performance')
    final_landing = float(landing if landing is not None else raw_duty.get('min_performance') or 0.0)
    duty_hours = float(raw_duty.get('duty_hours') or 0.0)
    start = min(100.0, avg + (avg - final_landing) * 0.5)

    performances = []
    for hours in elapsed_at_arrival:
        fraction = hours / duty_hours if duty_hours > 0 else 0.0
        performances.append(max(0.0, min(100.0, start - (start - final_landing) * fraction)))
    return performances


# ============================================================================
# PARSER
# ============================================================================

class AnalysisPayloadParser:
    """
    Parser for the /api/analyze response

    Usage:
        parser = AnalysisPayloadParser()
        parsed = parser.parse(payload)
        layout = engine.layout(parsed.duties, parsed.rest_days, parsed.month, frame)
    """

    def __init__(self, home_timezone: Optional[str] = None):
        self.home_timezone = home_timezone
        self.home_tz = None

    def _set_home_timezone(self, name: Optional[str]) -> None:
        self.home_tz = None
        if not name:
            return
        try:
            self.home_tz = pytz.timezone(name)
        except pytz.UnknownTimeZoneError:
            logger.warning(f"Unknown home base timezone {name!r} - local times must come from the payload")

    def _home_clock(self, iso: Optional[str]) -> Optional[str]:
        """UTC ISO timestamp -> 'HH:MM' in the home base timezone"""
        if self.home_tz is None:
            return None
        parsed = parse_iso_datetime(iso)
        if parsed is None:
            return None
        return parsed.astimezone(self.home_tz).strftime('%H:%M')

    def parse(self, payload: Dict[str, Any]) -> ParsedAnalysis:
        tz_name = self.home_timezone or payload.get('home_base_timezone')
        self._set_home_timezone(tz_name)
        result = ParsedAnalysis(home_base_timezone=tz_name)

        for raw in payload.get('duties') or []:
            duty_id = str(raw.get('duty_id', '?')) if isinstance(raw, dict) else '?'
            try:
                result.duties.append(self.parse_duty(raw))
            except PAYLOAD_ERRORS as e:
                logger.warning(f"[{duty_id}] Skipped malformed duty: {e!r}")
                result.skipped_duty_ids.append(duty_id)

        for raw in payload.get('rest_days_sleep') or []:
            try:
                result.rest_days.append(self.parse_rest_day(raw))
            except PAYLOAD_ERRORS as e:
                logger.warning(f"Skipped malformed rest day {raw.get('date') if isinstance(raw, dict) else raw!r}: {e!r}")

        logger.debug(f"Parsed {len(result.duties)} duties, {len(result.rest_days)} rest days")
        return result

    # ========================================================================
    # DUTIES
    # ========================================================================

    def parse_duty(self, raw: Dict[str, Any]) -> DutyRecord:
        duty_id = str(raw['duty_id'])
        duty_date = date.fromisoformat(str(raw['date'])[:10])

        segments = raw.get('segments') or []
        interpolated = interpolate_segment_performances(raw)
        avg = float(raw.get('avg_performance') or 0.0)
        legs = tuple(
            # A zero from the interpolation falls back to the duty average
            self.parse_leg(seg, (interpolated[i] if i < len(interpolated) else 0.0) or avg)
            for i, seg in enumerate(segments)
        )

        sleep_raw = raw.get('sleep_quality') or raw.get('sleep_estimate')
        landing = raw.get('landing_performance')

        return DutyRecord(
            duty_id=duty_id,
            date=duty_date,
            legs=legs,
            report_time_local=(
                _first_present(raw, 'report_time_home_tz', 'report_time_local')
                or self._home_clock(raw.get('report_time_utc'))
            ),
            release_time_local=(
                _first_present(raw, 'release_time_home_tz', 'release_time_local')
                or self._home_clock(raw.get('release_time_utc'))
            ),
            report_time_utc=raw.get('report_time_utc'),
            release_time_utc=raw.get('release_time_utc'),
            duty_type=str(raw.get('duty_type') or 'flight'),
            training_code=raw.get('training_code') or None,
            avg_performance=avg,
            min_performance=_optional_float(raw.get('min_performance')),
            landing_performance=_optional_float(landing),
            sleep_debt=float(raw.get('sleep_debt') or 0.0),
            wocl_hours=float(raw.get('wocl_hours') or 0.0),
            prior_sleep=float(raw.get('prior_sleep') or 0.0),
            sleep_estimate=self.parse_sleep_estimate(sleep_raw) if sleep_raw else None,
            circadian_phase_shift=_optional_float(raw.get('circadian_phase_shift')),
            phase_shift_delta=_optional_float(raw.get('phase_shift_delta')),
            max_fdp_hours=_optional_float(raw.get('max_fdp_hours')),
            inflight_rest_blocks=tuple(
                self.parse_inflight_rest_block(b) for b in raw.get('inflight_rest_blocks') or []
            ),
        )

    def parse_leg(self, seg: Dict[str, Any], fallback_performance: float) -> FlightLeg:
        performance = seg.get('performance')
        activity_code = seg.get('activity_code') or None
        return FlightLeg(
            flight_number=str(seg.get('flight_number', '')),
            departure=str(seg.get('departure', '')),
            arrival=str(seg.get('arrival', '')),
            departure_time_local=(
                _first_present(seg, 'departure_time_home_tz', 'departure_time_local')
                or self._home_clock(seg.get('departure_time'))
            ),
            arrival_time_local=(
                _first_present(seg, 'arrival_time_home_tz', 'arrival_time_local')
                or self._home_clock(seg.get('arrival_time'))
            ),
            departure_time_utc=seg.get('departure_time_utc') or iso_to_zulu(seg.get('departure_time')),
            arrival_time_utc=seg.get('arrival_time_utc') or iso_to_zulu(seg.get('arrival_time')),
            performance=float(performance) if performance is not None else fallback_performance,
            block_hours=float(seg.get('block_hours') or 0.0),
            activity_code=activity_code,
            # DH = pilot is passenger, not operating
            is_deadhead=bool(seg.get('is_deadhead')) or activity_code == 'DH',
        )

    def parse_inflight_rest_block(self, raw: Dict[str, Any]) -> InFlightRestBlock:
        start_day, start_hour, end_day, end_hour = _day_hour_pairs(raw, '')
        return InFlightRestBlock(
            duration_hours=float(raw.get('duration_hours') or 0.0),
            effective_sleep_hours=float(raw.get('effective_sleep_hours') or 0.0),
            start_utc=raw.get('start_utc'),
            end_utc=raw.get('end_utc'),
            start_day=start_day,
            start_hour=start_hour,
            end_day=end_day,
            end_hour=end_hour,
            is_during_wocl=bool(raw.get('is_during_wocl', False)),
            crew_set=raw.get('crew_set'),
        )

    # ========================================================================
    # SLEEP
    # ========================================================================

    def parse_sleep_timing(self, raw: Dict[str, Any], fallback_block: Optional[Dict[str, Any]] = None) -> SleepTiming:
        fallback_block = fallback_block or {}
        start_day, start_hour, end_day, end_hour = _day_hour_pairs(raw, 'sleep_')
        if start_day is None:
            start_day, start_hour, end_day, end_hour = _day_hour_pairs(fallback_block, 'sleep_')
        return SleepTiming(
            start_time=_first_present(raw, 'sleep_start_time_home_tz', 'sleep_start_time'),
            end_time=_first_present(raw, 'sleep_end_time_home_tz', 'sleep_end_time'),
            start_iso=raw.get('sleep_start_iso') or fallback_block.get('sleep_start_iso'),
            end_iso=raw.get('sleep_end_iso') or fallback_block.get('sleep_end_iso'),
            start_day=start_day,
            start_hour=start_hour,
            end_day=end_day,
            end_hour=end_hour,
        )

    def parse_sleep_estimate(self, raw: Dict[str, Any]) -> SleepEstimate:
        blocks = raw.get('sleep_blocks') or []
        first_block = blocks[0] if blocks else None
        return SleepEstimate(
            total_sleep_hours=float(raw.get('total_sleep_hours') or 0.0),
            effective_sleep_hours=float(raw.get('effective_sleep_hours') or 0.0),
            sleep_efficiency=float(raw.get('sleep_efficiency') or 0.0),
            sleep_strategy=str(raw.get('sleep_strategy') or raw.get('strategy_type') or 'unknown'),
            wocl_overlap_hours=float(raw.get('wocl_overlap_hours') or 0.0),
            warnings=tuple(raw.get('warnings') or ()),
            timing=self.parse_sleep_timing(raw, first_block),
            quality_factors=_quality_factors(raw.get('quality_factors')),
            confidence=_optional_float(raw.get('confidence')),
        )

    def parse_sleep_block(self, raw: Dict[str, Any]) -> SleepBlockRecord:
        return SleepBlockRecord(
            timing=self.parse_sleep_timing(raw),
            effective_hours=float(raw.get('effective_hours') or 0.0),
            quality_factor=float(raw.get('quality_factor') or 0.0),
            duration_hours=float(raw.get('duration_hours') or 0.0),
            sleep_type=str(raw.get('sleep_type') or 'main'),
            quality_factors=_quality_factors(raw.get('quality_factors')),
        )

    def parse_rest_day(self, raw: Dict[str, Any]) -> RestDayRecord:
        return RestDayRecord(
            date=date.fromisoformat(str(raw['date'])[:10]),
            sleep_blocks=tuple(self.parse_sleep_block(b) for b in raw.get('sleep_blocks') or []),
            strategy_type=str(raw.get('strategy_type') or 'recovery'),
            total_sleep_hours=float(raw.get('total_sleep_hours') or 0.0),
            effective_sleep_hours=float(raw.get('effective_sleep_hours') or 0.0),
            quality_factors=_quality_factors(raw.get('quality_factors')),
        )

    # ========================================================================
    # HIGH-RESOLUTION TIMELINES
    # ========================================================================

    @staticmethod
    def parse_detail_timeline(raw: Dict[str, Any]) -> DutyDetailTimeline:
        """Response of GET /api/duty/{analysis_id}/{duty_id}"""
        points = []
        for point in raw.get('timeline') or []:
            timestamp = point.get('timestamp')
            performance = point.get('performance')
            if timestamp is None or performance is None:
                continue
            points.append(DetailPoint(timestamp_iso=str(timestamp), performance=float(performance)))
        return DutyDetailTimeline(duty_id=str(raw['duty_id']), points=tuple(points))
