"""
Duty Segment Builder
====================

Decomposes one duty into check-in, flight and ground segments positioned on
the row grid. All times are first laid out on a continuous hour axis measured
from the duty's start row, then cut at midnight by the IntervalSplitter.
Simulator and ground training duties have no legs and become a single
training segment from report to release.

Flight segments carry a phase breakdown (takeoff -> landing) for the zoomed
chronogram view, and the duty gets an FDP-limit marker when the backend sends
the applicable maximum FDP.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from core.interval_splitter import IntervalSplitter
from core.parameters import LayoutConfig
from core.time_coordinates import TimeCoordinate, TimeCoordinateResolver
from models.data_models import (
    DutyBar, DutyRecord, FdpLimitMarker, FlightLeg, FlightPhase, PhaseSlice,
    SegmentBar, SegmentKind
)

logger = logging.getLogger(__name__)


# Phase share of block time and performance offset relative to the leg value.
# Landing uses the duty landing performance when the backend provides one.
FLIGHT_PHASE_PROFILE: Tuple[Tuple[FlightPhase, float, float], ...] = (
    (FlightPhase.TAKEOFF, 15.0, 5.0),
    (FlightPhase.CLIMB, 10.0, 3.0),
    (FlightPhase.CRUISE, 50.0, 0.0),
    (FlightPhase.DESCENT, 10.0, -2.0),
    (FlightPhase.APPROACH, 10.0, -4.0),
    (FlightPhase.LANDING, 5.0, -5.0),
)


def flight_phases(leg_performance: float, landing_performance: Optional[float] = None) -> Tuple[PhaseSlice, ...]:
    """Phase breakdown of one flight segment, performance clamped to 0-100"""
    slices = []
    for phase, width, offset in FLIGHT_PHASE_PROFILE:
        if phase is FlightPhase.LANDING and landing_performance is not None:
            performance = landing_performance
        else:
            performance = leg_performance + offset
        slices.append(PhaseSlice(phase, max(0.0, min(100.0, performance)), width))
    return tuple(slices)


@dataclass(frozen=True)
class _Segment:
    """Segment on the continuous hour axis of the duty's start row"""
    kind: SegmentKind
    start: float
    end: float
    performance: float
    leg: Optional[FlightLeg] = None


def _not_before(hour: float, floor: float) -> float:
    """Shift a clock hour forward by whole days until it is >= floor"""
    if hour >= floor:
        return hour
    return hour + 24 * math.ceil((floor - hour) / 24)


class DutySegmentBuilder:
    """Builds duty bars, with their segments, for one reference frame"""

    def __init__(self, resolver: TimeCoordinateResolver, splitter: IntervalSplitter, config: LayoutConfig):
        self.resolver = resolver
        self.splitter = splitter
        self.params = config.timeline_params

    # ========================================================================
    # TIMELINE
    # ========================================================================

    def _layout(self, duty: DutyRecord) -> Tuple[int, List[_Segment]]:
        """Start row and ordered segments. Empty when no leg has usable times."""
        timed = []
        for leg in duty.legs:
            departure = self.resolver.leg_departure(leg)
            arrival = self.resolver.leg_arrival(leg)
            if departure is None or arrival is None:
                logger.debug(f"[{duty.duty_id}] Leg {leg.flight_number} has no usable times, omitted")
                continue
            timed.append((leg, departure, arrival))

        if not timed:
            if duty.is_training:
                return self._training_layout(duty)
            return self.resolver.duty_row(duty), []

        first_departure = timed[0][1]
        anchor = self.resolver.report_anchor(duty)
        if anchor is not None:
            # Report carries its own date: the duty starts on the report row
            row, check_in = anchor.row, anchor.hour
        else:
            row = self.resolver.duty_row(duty)
            report = self.resolver.report_hour(duty)
            check_in = report if report is not None else first_departure - self.params.check_in_hours
            if check_in > first_departure:
                check_in -= 24

        segments: List[_Segment] = []
        cursor = check_in
        previous_arrival = None

        for leg, departure, arrival in timed:
            dep = _not_before(departure, cursor)
            arr = _not_before(arrival, dep)

            if previous_arrival is None:
                segments.append(_Segment(
                    SegmentKind.CHECKIN, check_in, dep,
                    min(100.0, duty.avg_performance + self.params.check_in_performance_bonus)
                ))
            elif dep - previous_arrival > self.params.min_ground_gap_hours:
                segments.append(_Segment(SegmentKind.GROUND, previous_arrival, dep, duty.avg_performance))

            segments.append(_Segment(SegmentKind.FLIGHT, dep, arr, leg.performance, leg))
            previous_arrival = cursor = arr

        return row, segments

    def _training_layout(self, duty: DutyRecord) -> Tuple[int, List[_Segment]]:
        """Report to release as a single training segment"""
        report = self.resolver.report_anchor(duty)
        release = self.resolver.release_anchor(duty)
        if report is not None and release is not None:
            row, start = report.row, report.hour
            end = release.absolute_hours - row * 24
        else:
            row = self.resolver.duty_row(duty)
            start = self.resolver.report_hour(duty)
            end = self.resolver.release_hour(duty)
            if start is None or end is None:
                logger.debug(f"[{duty.duty_id}] Training duty without report/release times, omitted")
                return row, []
            # Release before report: night session ending the next day
            end = _not_before(end, start)

        if end <= start:
            return row, []
        performance = duty.min_performance if duty.min_performance is not None else duty.avg_performance
        return row, [_Segment(SegmentKind.TRAINING, start, end, performance)]

    def first_departure(self, duty: DutyRecord) -> Optional[TimeCoordinate]:
        """Grid coordinate of the first flight departure"""
        row, segments = self._layout(duty)
        for segment in segments:
            if segment.kind is SegmentKind.FLIGHT:
                day = math.floor(segment.start / 24)
                return TimeCoordinate(row + day, segment.start - day * 24)
        return None

    def start_row(self, duty: DutyRecord) -> int:
        """Row the duty's check-in falls on"""
        row, segments = self._layout(duty)
        if not segments:
            return row
        return row + math.floor(segments[0].start / 24)

    # ========================================================================
    # BARS
    # ========================================================================

    def build(self, duty: DutyRecord) -> List[DutyBar]:
        """One DutyBar per visible row the duty touches"""
        row, segments = self._layout(duty)
        if not segments:
            return []

        pieces_by_row: Dict[int, List[SegmentBar]] = defaultdict(list)
        for segment in segments:
            leg = segment.leg
            phases = ()
            if segment.kind is SegmentKind.FLIGHT:
                phases = flight_phases(segment.performance, duty.landing_performance)
            for piece in self.splitter.split_absolute(row, segment.start, segment.end):
                pieces_by_row[piece.row].append(SegmentBar(
                    kind=segment.kind,
                    start_hour=piece.start_hour,
                    end_hour=piece.end_hour,
                    performance=segment.performance,
                    flight_number=leg.flight_number if leg else None,
                    departure=leg.departure if leg else None,
                    arrival=leg.arrival if leg else None,
                    phases=phases,
                    activity_code=leg.activity_code if leg else None,
                    is_deadhead=leg.is_deadhead if leg else False,
                    training_code=duty.training_code if segment.kind is SegmentKind.TRAINING else None,
                ))

        bars = []
        for piece in self.splitter.split_absolute(row, segments[0].start, segments[-1].end):
            bars.append(DutyBar(
                row=piece.row,
                start_hour=piece.start_hour,
                end_hour=piece.end_hour,
                source=duty,
                is_overflow_start=piece.is_overflow_start,
                is_overflow_continuation=piece.is_overflow_continuation,
                segments=tuple(sorted(pieces_by_row[piece.row], key=lambda s: s.start_hour)),
            ))
        return bars

    def fdp_marker(self, duty: DutyRecord) -> Optional[FdpLimitMarker]:
        """Marker at check-in + max FDP, on the next row when past midnight"""
        if not duty.max_fdp_hours or duty.max_fdp_hours <= 0:
            return None
        row, segments = self._layout(duty)
        if not segments:
            return None

        limit = segments[0].start + duty.max_fdp_hours
        day = math.floor(limit / 24)
        hour = limit - day * 24
        if not self.resolver.is_visible(row + day):
            return None
        return FdpLimitMarker(
            row=row + day,
            start_hour=hour,
            end_hour=hour,
            source=duty,
            max_fdp_hours=duty.max_fdp_hours,
        )
