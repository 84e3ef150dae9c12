"""
Duty bar enrichment from the optional high-resolution duty timeline.

The backend serves a 5-minute resolution performance timeline per duty on
demand. When one is available, each duty bar gets a summary of the points
falling inside it; bars without data stay as they are.
"""

import logging
from dataclasses import replace
from typing import Callable, Optional

from core.time_coordinates import TimeCoordinate
from models.data_models import DetailSummary, DutyBar, DutyDetailTimeline

logger = logging.getLogger(__name__)


class DetailEnricher:

    def __init__(self, to_coordinate: Callable[[str], Optional[TimeCoordinate]]):
        # Maps a point's ISO timestamp onto the grid of the active frame
        self.to_coordinate = to_coordinate

    def summarize(self, bar: DutyBar, timeline: DutyDetailTimeline) -> Optional[DetailSummary]:
        inside = []
        for point in timeline.points:
            coordinate = self.to_coordinate(point.timestamp_iso)
            if coordinate is None:
                continue
            if coordinate.row == bar.row and bar.start_hour <= coordinate.hour <= bar.end_hour:
                inside.append((coordinate.hour, point.performance))

        if not inside:
            return None

        low_hour, low_performance = min(inside, key=lambda p: p[1])
        return DetailSummary(
            point_count=len(inside),
            min_performance=low_performance,
            mean_performance=sum(p for _, p in inside) / len(inside),
            min_performance_hour=low_hour,
        )

    def enrich(self, bar: DutyBar, timeline: Optional[DutyDetailTimeline]) -> DutyBar:
        if timeline is None or not timeline.points:
            return bar
        summary = self.summarize(bar, timeline)
        if summary is None:
            logger.debug(f"[{timeline.duty_id}] No detail points on row {bar.row}")
            return bar
        return replace(bar, detail=summary)
