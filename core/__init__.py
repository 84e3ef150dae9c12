"""
Core Timeline Layout Components
===============================

Main exports for the duty/sleep chronogram layout engine.
"""

from core.parameters import (
    EASAFatigueFramework,
    AdaptationRates,
    TimelineParameters,
    LayoutConfig
)

from core.time_coordinates import (
    TimeCoordinate,
    TimeCoordinateResolver,
    HomeBaseResolver,
    UtcResolver,
    ElapsedResolver,
    resolver_for
)
from core.interval_splitter import IntervalPiece, IntervalSplitter
from core.duty_segments import DutySegmentBuilder, flight_phases
from core.sleep_windows import SleepWindow, SleepWindowResolver, recovery_score
from core.circadian_tracker import CircadianAdaptationTracker
from core.wocl import WoclBandCalculator
from core.deduplication import BarDeduplicator
from core.detail_enrichment import DetailEnricher
from core.layout_engine import TimelineLayoutEngine, day_warnings

__all__ = [
    # Parameters
    'EASAFatigueFramework',
    'AdaptationRates',
    'TimelineParameters',
    'LayoutConfig',
    # Coordinates
    'TimeCoordinate',
    'TimeCoordinateResolver',
    'HomeBaseResolver',
    'UtcResolver',
    'ElapsedResolver',
    'resolver_for',
    'IntervalPiece',
    'IntervalSplitter',
    # Bar builders
    'DutySegmentBuilder',
    'flight_phases',
    'SleepWindow',
    'SleepWindowResolver',
    'recovery_score',
    'CircadianAdaptationTracker',
    'WoclBandCalculator',
    'BarDeduplicator',
    'DetailEnricher',
    # Main engine
    'TimelineLayoutEngine',
    'day_warnings',
]
