"""
Sleep Window Resolution
=======================

Positions one sleep interval per duty estimate or rest-day block. Backends
of different vintages send different encodings, so the window is resolved
through a prioritized fallback chain:

1. Precomputed home-base (day, hour) pairs
2. ISO-8601 start/end, read literally in the requested frame
3. Plain "HH:MM" start/end relative to the duty row
4. Heuristic: wake 1.5h before the first departure, sleep back from there

Recovery score (all paths):
    clamp(0, 100, effective/need*100 + efficiency*20 - wocl_overlap*5)
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from core.interval_splitter import IntervalSplitter
from core.parameters import LayoutConfig, TimelineParameters
from core.time_coordinates import (
    TimeCoordinate, TimeCoordinateResolver, iso_to_zulu, parse_clock
)
from models.data_models import (
    DutyRecord, RestDayRecord, SleepBar, SleepSource, SleepTiming
)

logger = logging.getLogger(__name__)

# Strategy whose nights are delivered individually as rest-day blocks
ULR_PRE_DUTY_STRATEGY = 'ulr_pre_duty'


def recovery_score(
    effective_hours: float,
    efficiency: float,
    wocl_overlap_hours: float = 0.0,
    params: Optional[TimelineParameters] = None
) -> float:
    """0-100 recovery score for one sleep period"""
    params = params or TimelineParameters()
    score = (
        effective_hours / params.baseline_sleep_need_hours * 100
        + efficiency * params.efficiency_bonus_weight
        - wocl_overlap_hours * params.wocl_overlap_penalty_per_hour
    )
    return max(0.0, min(100.0, score))


@dataclass(frozen=True)
class SleepWindow:
    """Resolved sleep interval; end is strictly after start"""
    start: TimeCoordinate
    end: TimeCoordinate
    source: SleepSource

    @property
    def duration_hours(self) -> float:
        return self.end.absolute_hours - self.start.absolute_hours


class SleepWindowResolver:
    """Resolves sleep windows and turns them into (split) sleep bars"""

    def __init__(self, resolver: TimeCoordinateResolver, splitter: IntervalSplitter, config: LayoutConfig):
        self.resolver = resolver
        self.splitter = splitter
        self.params = config.timeline_params

    # ========================================================================
    # FALLBACK CHAIN
    # ========================================================================

    def _from_precomputed(self, timing: SleepTiming, anchor_row: int) -> Optional[SleepWindow]:
        if not timing.has_precomputed:
            return None
        start = self.resolver.resolve_day_hour(timing.start_day, timing.start_hour, anchor_row)
        end = self.resolver.resolve_day_hour(timing.end_day, timing.end_hour, anchor_row)
        if start is None or end is None:
            return None
        if end.row == start.row and end.hour <= start.hour:
            end = TimeCoordinate(start.row + 1, end.hour)
        return self._window(start, end, SleepSource.PRECOMPUTED)

    def _from_iso(self, timing: SleepTiming) -> Optional[SleepWindow]:
        start = self.resolver.resolve_iso(timing.start_iso)
        end = self.resolver.resolve_iso(timing.end_iso)
        if start is None or end is None:
            return None
        if end.row - start.row > 1:
            # Whole rest period sent as one block: keep the night before the end day
            start = TimeCoordinate(end.row - 1, self.params.multi_day_sleep_onset_hour)
        return self._window(start, end, SleepSource.ISO)

    def _from_clock(self, timing: SleepTiming, anchor_row: int) -> Optional[SleepWindow]:
        end = self.resolver.resolve_clock(timing.end_time, anchor_row)
        if end is None:
            return None
        start_hour = parse_clock(timing.start_time)
        if start_hour is None or start_hour == end.hour:
            return None
        start_row = anchor_row - 1 if start_hour > end.hour else anchor_row
        start = self.resolver.resolve_clock(timing.start_time, start_row)
        if start is None:
            return None
        return self._window(start, end, SleepSource.CLOCK)

    def _from_heuristic(self, first_departure: Optional[TimeCoordinate], total_sleep_hours: float) -> Optional[SleepWindow]:
        if first_departure is None or total_sleep_hours <= 0:
            return None
        wake = max(0.0, first_departure.hour - self.params.wake_before_duty_hours)
        start_row, start_hour = first_departure.row, wake - total_sleep_hours
        if start_hour < 0:
            start_row, start_hour = start_row - 1, start_hour + 24
        return self._window(
            TimeCoordinate(start_row, start_hour),
            TimeCoordinate(first_departure.row, wake),
            SleepSource.HEURISTIC,
        )

    @staticmethod
    def _window(start: TimeCoordinate, end: TimeCoordinate, source: SleepSource) -> Optional[SleepWindow]:
        if end.absolute_hours <= start.absolute_hours:
            return None
        return SleepWindow(start, end, source)

    def resolve_window(
        self,
        timing: SleepTiming,
        anchor_row: int,
        first_departure: Optional[TimeCoordinate] = None,
        total_sleep_hours: float = 0.0
    ) -> Optional[SleepWindow]:
        """First path of the chain that yields a valid interval, else None"""
        return (
            self._from_precomputed(timing, anchor_row)
            or self._from_iso(timing)
            or self._from_clock(timing, anchor_row)
            or self._from_heuristic(first_departure, total_sleep_hours)
        )

    # ========================================================================
    # BARS
    # ========================================================================

    def _bars(self, window: SleepWindow, timing: SleepTiming, **fields) -> List[SleepBar]:
        pieces = self.splitter.split_span(window.start.row, window.start.hour, window.end.row, window.end.hour)
        return [
            SleepBar(
                row=piece.row,
                start_hour=piece.start_hour,
                end_hour=piece.end_hour,
                is_overflow_start=piece.is_overflow_start,
                is_overflow_continuation=piece.is_overflow_continuation,
                resolved_by=window.source,
                original_start_hour=window.start.hour,
                original_end_hour=window.end.hour,
                sleep_start_zulu=iso_to_zulu(timing.start_iso),
                sleep_end_zulu=iso_to_zulu(timing.end_iso),
                **fields
            )
            for piece in pieces
        ]

    def duty_sleep_bars(
        self,
        duty: DutyRecord,
        anchor_row: int,
        first_departure: Optional[TimeCoordinate] = None
    ) -> List[SleepBar]:
        """Pre-duty sleep bars from the duty's sleep estimate"""
        estimate = duty.sleep_estimate
        if estimate is None:
            logger.debug(f"[{duty.duty_id}] No sleep estimate - no sleep bar")
            return []
        if estimate.sleep_strategy == ULR_PRE_DUTY_STRATEGY:
            logger.debug(f"[{duty.duty_id}] ULR pre-duty sleep is drawn from rest-day blocks")
            return []

        window = self.resolve_window(
            estimate.timing, anchor_row, first_departure, estimate.total_sleep_hours
        )
        if window is None:
            logger.warning(f"[{duty.duty_id}] Sleep window could not be resolved")
            return []
        if window.source is SleepSource.HEURISTIC:
            logger.debug(f"[{duty.duty_id}] Sleep window estimated from duty start")

        return self._bars(
            window,
            estimate.timing,
            source=duty,
            recovery_score=recovery_score(
                estimate.effective_sleep_hours,
                estimate.sleep_efficiency,
                estimate.wocl_overlap_hours,
                self.params,
            ),
            effective_sleep=estimate.effective_sleep_hours,
            sleep_efficiency=estimate.sleep_efficiency,
            sleep_strategy=estimate.sleep_strategy,
            is_pre_duty=True,
            quality_factors=estimate.quality_factors,
            wocl_overlap_hours=estimate.wocl_overlap_hours,
        )

    def rest_day_sleep_bars(self, rest_day: RestDayRecord) -> List[SleepBar]:
        """Sleep bars for every block of a rest day; quality factor acts as efficiency"""
        anchor_row = self.resolver.row_for_date(rest_day.date)
        bars = []
        for block in rest_day.sleep_blocks:
            window = self.resolve_window(block.timing, anchor_row)
            if window is None:
                logger.warning(f"[rest {rest_day.date}] Sleep block could not be resolved")
                continue
            bars.extend(self._bars(
                window,
                block.timing,
                source=rest_day,
                recovery_score=recovery_score(block.effective_hours, block.quality_factor, 0.0, self.params),
                effective_sleep=block.effective_hours,
                sleep_efficiency=block.quality_factor,
                sleep_strategy=rest_day.strategy_type,
                is_pre_duty=False,
                quality_factors=block.quality_factors or rest_day.quality_factors,
            ))
        return bars
