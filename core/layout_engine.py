"""
Timeline Layout Engine
======================

Single orchestrator for the chronogram views. One engine serves the
home-base, UTC and elapsed grids; only the injected TimeCoordinateResolver
differs between them.

Pipeline per call (full recompute, no state kept between calls):
    duties/rest days -> DutySegmentBuilder & SleepWindowResolver
    -> CircadianAdaptationTracker -> WoclBandCalculator -> BarDeduplicator

A malformed record never aborts the layout: it is logged and skipped.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Sequence

from core.circadian_tracker import CircadianAdaptationTracker
from core.deduplication import BarDeduplicator
from core.detail_enrichment import DetailEnricher
from core.duty_segments import DutySegmentBuilder
from core.interval_splitter import IntervalSplitter
from core.parameters import LayoutConfig
from core.sleep_windows import SleepWindowResolver
from core.time_coordinates import (
    TimeCoordinate, TimeCoordinateResolver, resolver_for, utc_offset_from_leg
)
from core.wocl import WoclBandCalculator
from models.data_models import (
    DutyDetailTimeline, DutyRecord, InFlightRestBar, ReferenceFrame,
    RestDayRecord, TimelineLayout
)

logger = logging.getLogger(__name__)

# Per-record failures that are isolated instead of aborting the layout
RECORD_ERRORS = (ValueError, TypeError, KeyError)


def day_warnings(duty: DutyRecord) -> List[str]:
    """Short warning badges shown next to a duty's row"""
    warnings = []
    if duty.wocl_hours > 0:
        warnings.append(f"WOCL {duty.wocl_hours:.1f}h")
    if duty.prior_sleep < 8:
        warnings.append(f"Sleep {duty.prior_sleep:.1f}h")
    if duty.min_performance is not None and duty.min_performance < 60:
        warnings.append(f"Perf {round(duty.min_performance)}%")
    if duty.sleep_debt > 4:
        warnings.append(f"Debt {duty.sleep_debt:.1f}h")
    return warnings


def home_base_utc_offset(duty: DutyRecord) -> float:
    """Home-base UTC offset implied by the first leg with both time encodings"""
    for leg in duty.legs:
        offset = utc_offset_from_leg(leg)
        if offset is not None:
            return offset
    return 0.0


class TimelineLayoutEngine:
    """
    Duty/sleep chronogram layout

    Usage:
        engine = TimelineLayoutEngine(LayoutConfig.default_config())
        layout = engine.layout(duties, rest_days, date(2025, 3, 1), ReferenceFrame.UTC)
    """

    def __init__(self, config: LayoutConfig = None):
        self.config = config or LayoutConfig.default_config()
        self.deduplicator = BarDeduplicator()
        self.wocl_calculator = WoclBandCalculator(self.config)

    def layout(
        self,
        duties: Sequence[DutyRecord],
        rest_days: Sequence[RestDayRecord],
        month: date,
        frame: ReferenceFrame,
        detail_timelines: Optional[Dict[str, DutyDetailTimeline]] = None,
        resolver: Optional[TimeCoordinateResolver] = None
    ) -> TimelineLayout:
        """Position every duty, sleep and circadian element of one month"""
        resolver = resolver or resolver_for(frame, month)
        splitter = IntervalSplitter(resolver.first_row, resolver.last_row)
        duty_builder = DutySegmentBuilder(resolver, splitter, self.config)
        sleep_resolver = SleepWindowResolver(resolver, splitter, self.config)
        tracker = CircadianAdaptationTracker(resolver, self.config)
        detail_timelines = detail_timelines or {}

        result = TimelineLayout(
            frame=resolver.frame,
            month_start=resolver.month_start,
            first_row=resolver.first_row,
            last_row=resolver.last_row,
        )

        ordered = sorted(duties, key=lambda d: d.date)
        sleep_bars = []

        # ====================================================================
        # DUTIES
        # ====================================================================
        for duty in ordered:
            try:
                if not duty.legs and not duty.is_training:
                    logger.debug(f"[{duty.duty_id}] Duty has no legs - no duty bar")
                start_row = duty_builder.start_row(duty)
                offset = home_base_utc_offset(duty)

                enricher = DetailEnricher(lambda iso, o=offset: resolver.resolve_utc_instant(iso, o))
                timeline = detail_timelines.get(duty.duty_id)
                duty_bars = [enricher.enrich(bar, timeline) for bar in duty_builder.build(duty)]
                marker = duty_builder.fdp_marker(duty)
                rest_bars = self._inflight_rest_bars(duty, resolver, splitter, start_row, offset)
                duty_sleep = sleep_resolver.duty_sleep_bars(duty, start_row, duty_builder.first_departure(duty))
            except RECORD_ERRORS as e:
                logger.warning(f"[{duty.duty_id}] Skipped in {resolver.frame.value} layout: {e}")
                continue

            result.duty_bars.extend(duty_bars)
            if marker is not None:
                result.fdp_markers.append(marker)
            result.inflight_rest_bars.extend(rest_bars)
            sleep_bars.extend(duty_sleep)

            warnings = day_warnings(duty)
            if warnings and resolver.is_visible(start_row):
                result.row_warnings.setdefault(start_row, []).extend(warnings)

        # ====================================================================
        # REST DAYS
        # ====================================================================
        for rest_day in rest_days:
            try:
                sleep_bars.extend(sleep_resolver.rest_day_sleep_bars(rest_day))
            except RECORD_ERRORS as e:
                logger.warning(f"[rest {rest_day.date}] Skipped in {resolver.frame.value} layout: {e}")

        result.sleep_bars = self.deduplicator.deduplicate(sleep_bars)

        # ====================================================================
        # CIRCADIAN BACKGROUND
        # ====================================================================
        snapshots = tracker.track(ordered)
        result.circadian_states = tracker.states_for_rows(result.rows, snapshots)
        for state in result.circadian_states:
            result.wocl_bands.extend(self.wocl_calculator.bands(state))
            result.nadir_markers.append(self.wocl_calculator.nadir(state))

        result.duty_bars.sort(key=lambda b: (b.row, b.start_hour))
        result.inflight_rest_bars.sort(key=lambda b: (b.row, b.start_hour))
        result.fdp_markers.sort(key=lambda b: (b.row, b.start_hour))

        logger.debug(
            f"{resolver.frame.value} layout {resolver.month_start:%Y-%m}: "
            f"{len(result.duty_bars)} duty bars, {len(result.sleep_bars)} sleep bars "
            f"({len(sleep_bars) - len(result.sleep_bars)} duplicates removed)"
        )
        return result

    # ========================================================================
    # IN-FLIGHT REST
    # ========================================================================

    @staticmethod
    def _inflight_rest_bars(
        duty: DutyRecord,
        resolver: TimeCoordinateResolver,
        splitter: IntervalSplitter,
        anchor_row: int,
        utc_offset: float
    ) -> List[InFlightRestBar]:
        """Crew rest on augmented/ULR sectors: home-base pair first, else UTC timestamps"""
        bars = []
        for block in duty.inflight_rest_blocks:
            start: Optional[TimeCoordinate] = resolver.resolve_day_hour(block.start_day, block.start_hour, anchor_row)
            end: Optional[TimeCoordinate] = resolver.resolve_day_hour(block.end_day, block.end_hour, anchor_row)
            if start is None or end is None:
                start = resolver.resolve_utc_instant(block.start_utc, utc_offset)
                end = resolver.resolve_utc_instant(block.end_utc, utc_offset)
            if start is None or end is None:
                logger.debug(f"[{duty.duty_id}] In-flight rest block without usable times")
                continue
            if end.absolute_hours <= start.absolute_hours:
                end = TimeCoordinate(start.row + 1, end.hour)

            for piece in splitter.split_span(start.row, start.hour, end.row, end.hour):
                bars.append(InFlightRestBar(
                    row=piece.row,
                    start_hour=piece.start_hour,
                    end_hour=piece.end_hour,
                    source=duty,
                    is_overflow_start=piece.is_overflow_start,
                    is_overflow_continuation=piece.is_overflow_continuation,
                    duration_hours_total=block.duration_hours,
                    effective_sleep_hours=block.effective_sleep_hours,
                    is_during_wocl=block.is_during_wocl,
                    crew_set=block.crew_set,
                ))
        return bars
