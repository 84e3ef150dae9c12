"""
Configuration & Parameters for the Timeline Layout Engine
=========================================================

All configuration dataclasses for chronogram layout:
- EASAFatigueFramework: WOCL window and circadian nadir
- AdaptationRates: Circadian adaptation rates between duties
- TimelineParameters: Duty segmentation and sleep-window fallbacks
- LayoutConfig: Master configuration container

Scientific Foundation:
    EASA AMC1 ORO.FTL.105, Waterhouse et al. (2007), Czeisler et al. (1989)
"""

import math
import warnings
from dataclasses import dataclass


@dataclass
class EASAFatigueFramework:
    """EASA FTL regulatory definitions (EU Regulation 965/2012)"""

    # WOCL definition - AMC1 ORO.FTL.105(10), drawn as [02:00, 06:00)
    wocl_start_hour: float = 2.0
    wocl_end_hour: float = 6.0

    # Core body temperature minimum
    nadir_hour: float = 4.5

    def __post_init__(self):
        assert 0 <= self.wocl_start_hour < self.wocl_end_hour <= 24, \
            f"WOCL window invalid: {self.wocl_start_hour}-{self.wocl_end_hour}"
        assert 0 <= self.nadir_hour < 24, f"Nadir must be 0-24h: {self.nadir_hour}"

    @property
    def wocl_duration_hours(self) -> float:
        return self.wocl_end_hour - self.wocl_start_hour


@dataclass
class AdaptationRates:
    """
    Circadian adaptation rates for timezone shifts
    Reference: Waterhouse et al. (2007)
    """

    westward_hours_per_day: float = 1.5  # Phase delay (easier)
    eastward_hours_per_day: float = 1.0  # Phase advance (harder)

    # Rest gap above which the body clock starts drifting back home
    min_rest_gap_hours: float = 12.0
    max_phase_shift_hours: float = 12.0

    def __post_init__(self):
        assert 0 < self.westward_hours_per_day <= 3.0, \
            f"Westward rate unrealistic: {self.westward_hours_per_day} (typical: 0.5-2.5 h/day)"
        assert 0 < self.eastward_hours_per_day <= 2.0, \
            f"Eastward rate unrealistic: {self.eastward_hours_per_day} (typical: 0.5-1.5 h/day)"
        assert self.min_rest_gap_hours >= 0, \
            f"Rest gap threshold must be non-negative: {self.min_rest_gap_hours}"
        assert 0 < self.max_phase_shift_hours <= 12, \
            f"Phase bound must be 0-12h: {self.max_phase_shift_hours}"

        if self.eastward_hours_per_day > self.westward_hours_per_day:
            warnings.warn(
                f"Eastward rate ({self.eastward_hours_per_day}) > Westward rate ({self.westward_hours_per_day}). "
                "This is atypical - westward adaptation is usually faster."
            )

    def get_rate(self, phase_shift_hours: float) -> float:
        """Rate at which a shift of this sign decays back toward home base"""
        return self.westward_hours_per_day if phase_shift_hours < 0 else self.eastward_hours_per_day

    def adapt_toward_home(self, phase_shift_hours: float, rest_days: float) -> float:
        """Move the phase shift toward zero without overshooting"""
        if phase_shift_hours == 0 or rest_days <= 0:
            return phase_shift_hours
        step = min(abs(phase_shift_hours), rest_days * self.get_rate(phase_shift_hours))
        return phase_shift_hours - math.copysign(step, phase_shift_hours)

    def clamp(self, phase_shift_hours: float) -> float:
        bound = self.max_phase_shift_hours
        return max(-bound, min(bound, phase_shift_hours))


@dataclass
class TimelineParameters:
    """
    Duty segmentation and sleep-window fallback constants

    Check-in default follows typical EASA report times (60 min before
    the first sector). Recovery score weights match the dashboard legend.
    """

    default_check_in_minutes: float = 60.0
    check_in_performance_bonus: float = 10.0   # Pre-duty alertness is higher
    min_ground_gap_minutes: float = 15.0

    # Heuristic sleep window (no timing data from backend)
    wake_before_duty_hours: float = 1.5
    # Onset assumed for multi-day rest spans without per-block data
    multi_day_sleep_onset_hour: float = 22.0

    # Recovery score = effective/need*100 + efficiency*bonus - wocl*penalty
    baseline_sleep_need_hours: float = 8.0
    efficiency_bonus_weight: float = 20.0
    wocl_overlap_penalty_per_hour: float = 5.0

    def __post_init__(self):
        assert self.default_check_in_minutes >= 0, \
            f"Check-in offset must be non-negative: {self.default_check_in_minutes}"
        assert self.min_ground_gap_minutes >= 0, \
            f"Ground gap threshold must be non-negative: {self.min_ground_gap_minutes}"
        assert self.wake_before_duty_hours >= 0, \
            f"Wake buffer must be non-negative: {self.wake_before_duty_hours}"
        assert 0 <= self.multi_day_sleep_onset_hour < 24, \
            f"Sleep onset must be 0-24h: {self.multi_day_sleep_onset_hour}"
        assert self.baseline_sleep_need_hours > 0, \
            f"Sleep need must be positive: {self.baseline_sleep_need_hours}"

        if not (30 <= self.default_check_in_minutes <= 120):
            warnings.warn(
                f"default_check_in_minutes={self.default_check_in_minutes} is outside typical range (30-120)"
            )

    @property
    def check_in_hours(self) -> float:
        return self.default_check_in_minutes / 60

    @property
    def min_ground_gap_hours(self) -> float:
        return self.min_ground_gap_minutes / 60


@dataclass
class LayoutConfig:
    """Master configuration container"""
    easa_framework: EASAFatigueFramework
    adaptation_rates: AdaptationRates
    timeline_params: TimelineParameters

    @classmethod
    def default_config(cls):
        return cls(
            easa_framework=EASAFatigueFramework(),
            adaptation_rates=AdaptationRates(),
            timeline_params=TimelineParameters(),
        )

    @classmethod
    def conservative_config(cls):
        """
        Slower body-clock recovery and stricter recovery scoring.
        - Adaptation rates reduced (0.7 east / 1.0 west)
        - Higher baseline sleep need
        - Heavier WOCL overlap penalty
        """
        return cls(
            easa_framework=EASAFatigueFramework(),
            adaptation_rates=AdaptationRates(
                westward_hours_per_day=1.0,
                eastward_hours_per_day=0.7,
            ),
            timeline_params=TimelineParameters(
                baseline_sleep_need_hours=8.5,
                wocl_overlap_penalty_per_hour=7.5,
            ),
        )

    @classmethod
    def liberal_config(cls):
        """
        Faster body-clock recovery for experienced-crew analysis.
        - Adaptation rates raised (1.2 east / 1.8 west)
        - Lower baseline sleep need
        """
        return cls(
            easa_framework=EASAFatigueFramework(),
            adaptation_rates=AdaptationRates(
                westward_hours_per_day=1.8,
                eastward_hours_per_day=1.2,
            ),
            timeline_params=TimelineParameters(
                baseline_sleep_need_hours=7.5,
            ),
        )

    @classmethod
    def from_preset(cls, preset: str) -> 'LayoutConfig':
        presets = {
            'default': cls.default_config,
            'conservative': cls.conservative_config,
            'liberal': cls.liberal_config,
        }
        if preset not in presets:
            raise ValueError(f"Unknown config preset: {preset!r} (use one of {sorted(presets)})")
        return presets[preset]()
