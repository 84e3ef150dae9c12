"""
Circadian Adaptation Tracker
============================

Explicit left fold over chronologically ordered duties carrying one scalar:
the body-clock phase shift relative to home base (hours, + = east).

Between duties separated by a rest gap the shift decays toward zero at the
configured east/west rates (Waterhouse et al. 2007), never overshooting.
A duty's absolute phase shift replaces the state; otherwise its incremental
hint is added. The state is clamped to +/-12h after every update.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from core.parameters import LayoutConfig
from core.time_coordinates import TimeCoordinateResolver, parse_iso_datetime
from models.data_models import CircadianState, DutyRecord

logger = logging.getLogger(__name__)


class CircadianAdaptationTracker:

    def __init__(self, resolver: TimeCoordinateResolver, config: LayoutConfig):
        self.resolver = resolver
        self.rates = config.adaptation_rates

    def _duty_row(self, duty: DutyRecord) -> int:
        anchor = self.resolver.report_anchor(duty)
        return anchor.row if anchor is not None else self.resolver.duty_row(duty)

    @staticmethod
    def rest_gap_hours(previous: DutyRecord, current: DutyRecord) -> float:
        """Release -> report gap, from UTC timestamps when both exist, else calendar days"""
        release = parse_iso_datetime(previous.release_time_utc)
        report = parse_iso_datetime(current.report_time_utc)
        if release is not None and report is not None:
            return (report - release).total_seconds() / 3600
        return (current.date - previous.date).days * 24.0

    def track(self, duties: Sequence[DutyRecord]) -> List[CircadianState]:
        """
        Fold over duties (must already be sorted by date).

        Returns one snapshot per duty row, ordered by row. A later duty on
        the same row overwrites the earlier snapshot.
        """
        state = 0.0
        snapshots = {}
        previous: Optional[DutyRecord] = None

        for duty in duties:
            if previous is not None:
                gap = self.rest_gap_hours(previous, duty)
                if gap > self.rates.min_rest_gap_hours:
                    state = self.rates.adapt_toward_home(state, gap / 24)

            if duty.circadian_phase_shift is not None:
                state = duty.circadian_phase_shift
            elif duty.phase_shift_delta is not None:
                state += duty.phase_shift_delta

            clamped = self.rates.clamp(state)
            if clamped != state:
                logger.debug(f"[{duty.duty_id}] Phase shift {state:+.1f}h clamped to {clamped:+.1f}h")
            state = clamped

            row = self._duty_row(duty)
            snapshots[row] = CircadianState(row, state)
            previous = duty

        return [snapshots[row] for row in sorted(snapshots)]

    def state_at(self, row: int, snapshots: Sequence[CircadianState]) -> CircadianState:
        """Latest snapshot at or before the row, adapted over the days since"""
        latest = None
        for snapshot in snapshots:
            if snapshot.row > row:
                break
            latest = snapshot
        if latest is None:
            return CircadianState(row, 0.0)
        shift = self.rates.adapt_toward_home(latest.phase_shift_hours, row - latest.row)
        return CircadianState(row, shift)

    def states_for_rows(self, rows: Iterable[int], snapshots: Sequence[CircadianState]) -> List[CircadianState]:
        return [self.state_at(row, snapshots) for row in rows]
