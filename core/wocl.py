"""
WOCL band and circadian nadir per grid row.

The nominal window [02:00, 06:00) and the 04:30 nadir move with the body
clock: a phase shift of s hours places them at (02:00 + s) mod 24 etc.
Bands that wrap midnight are drawn as [start, 24) plus [0, end) on the
same row.
"""

from typing import List, Tuple

from core.parameters import LayoutConfig
from models.data_models import CircadianState, NadirMarker, WoclBand


class WoclBandCalculator:

    def __init__(self, config: LayoutConfig):
        self.framework = config.easa_framework

    def band_hours(self, phase_shift: float) -> List[Tuple[float, float]]:
        """Shifted WOCL as one or two (start, end) intervals inside [0, 24]"""
        start = (self.framework.wocl_start_hour + phase_shift) % 24
        end = start + self.framework.wocl_duration_hours
        if end <= 24:
            return [(start, end)]
        return [(start, 24.0), (0.0, end - 24)]

    def nadir_hour(self, phase_shift: float) -> float:
        return (self.framework.nadir_hour + phase_shift) % 24

    def bands(self, state: CircadianState) -> List[WoclBand]:
        return [
            WoclBand(
                row=state.row,
                start_hour=start,
                end_hour=end,
                source=state,
                phase_shift=state.phase_shift_hours,
            )
            for start, end in self.band_hours(state.phase_shift_hours)
            if end > start
        ]

    def nadir(self, state: CircadianState) -> NadirMarker:
        hour = self.nadir_hour(state.phase_shift_hours)
        return NadirMarker(
            row=state.row,
            start_hour=hour,
            end_hour=hour,
            source=state,
            phase_shift=state.phase_shift_hours,
        )
