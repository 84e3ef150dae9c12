"""
Tests for the circadian phase-shift fold and per-row adaptation.

Run: python -m pytest tests/test_circadian_tracker.py -v
"""

from datetime import date

import pytest

from core import LayoutConfig
from core.circadian_tracker import CircadianAdaptationTracker
from core.time_coordinates import HomeBaseResolver, UtcResolver
from models.data_models import CircadianState, DutyRecord


MARCH = date(2025, 3, 1)


def _make_duty(duty_id, day, **kwargs):
    return DutyRecord(duty_id=duty_id, date=date(2025, 3, day), legs=(), **kwargs)


def _tracker(config=None, resolver_cls=HomeBaseResolver):
    return CircadianAdaptationTracker(resolver_cls(MARCH), config or LayoutConfig.default_config())


def _shifts(states):
    return [s.phase_shift_hours for s in states]


class TestFold:

    def test_no_hints_stays_at_home(self):
        tracker = _tracker()
        snapshots = tracker.track([_make_duty('D1', 1), _make_duty('D2', 3), _make_duty('D3', 8)])
        assert [s.row for s in snapshots] == [1, 3, 8]
        assert _shifts(snapshots) == [0.0, 0.0, 0.0]

    def test_absolute_shift_replaces_state(self):
        tracker = _tracker()
        snapshots = tracker.track([
            _make_duty('D1', 1, phase_shift_delta=3.0),
            _make_duty('D2', 2, circadian_phase_shift=-4.0, phase_shift_delta=2.0),
        ])
        assert _shifts(snapshots) == [pytest.approx(3.0), pytest.approx(-4.0)]

    def test_delta_added_after_adaptation(self):
        """+3, one day of eastward recovery (-1), then +3 again"""
        tracker = _tracker()
        snapshots = tracker.track([
            _make_duty('D1', 1, phase_shift_delta=3.0),
            _make_duty('D2', 2, phase_shift_delta=3.0),
        ])
        assert _shifts(snapshots) == [pytest.approx(3.0), pytest.approx(5.0)]

    def test_short_rest_gap_does_not_adapt(self):
        tracker = _tracker(resolver_cls=UtcResolver)
        snapshots = tracker.track([
            _make_duty('D1', 5, phase_shift_delta=6.0,
                       report_time_utc='2025-03-05T02:00:00Z', release_time_utc='2025-03-05T10:00:00Z'),
            _make_duty('D2', 5, report_time_utc='2025-03-05T20:00:00Z'),
        ])
        # Both duties report on UTC day 5: the later one overwrites the snapshot
        assert len(snapshots) == 1
        assert snapshots[0].phase_shift_hours == pytest.approx(6.0)

    def test_clamped_to_twelve_hours(self):
        tracker = _tracker()
        snapshots = tracker.track([
            _make_duty('D1', 5, phase_shift_delta=10.0),
            _make_duty('D2', 5, phase_shift_delta=10.0),
        ])
        assert _shifts(snapshots) == [pytest.approx(12.0)]


class TestRestGap:

    def test_from_utc_timestamps(self):
        previous = _make_duty('D1', 5, release_time_utc='2025-03-05T10:00:00Z')
        current = _make_duty('D2', 6, report_time_utc='2025-03-05T20:00:00Z')
        assert CircadianAdaptationTracker.rest_gap_hours(previous, current) == pytest.approx(10.0)

    def test_from_calendar_days(self):
        previous = _make_duty('D1', 5)
        current = _make_duty('D2', 8)
        assert CircadianAdaptationTracker.rest_gap_hours(previous, current) == pytest.approx(72.0)


class TestRowStates:

    def test_eastward_shift_decays_one_hour_per_day(self):
        tracker = _tracker()
        snapshots = tracker.track([_make_duty('D1', 1, circadian_phase_shift=6.0)])
        states = tracker.states_for_rows(range(1, 10), snapshots)
        assert _shifts(states) == pytest.approx([6.0, 5.0, 4.0, 3.0, 2.0, 1.0, 0.0, 0.0, 0.0])

    def test_westward_shift_decays_faster(self):
        tracker = _tracker()
        snapshots = tracker.track([_make_duty('D1', 1, circadian_phase_shift=-6.0)])
        states = tracker.states_for_rows(range(1, 6), snapshots)
        assert _shifts(states) == pytest.approx([-6.0, -4.5, -3.0, -1.5, 0.0])

    def test_never_overshoots_home(self):
        tracker = _tracker()
        snapshots = tracker.track([_make_duty('D1', 1, circadian_phase_shift=2.5)])
        states = tracker.states_for_rows(range(1, 31), snapshots)
        assert all(s.phase_shift_hours >= 0 for s in states)
        assert states[-1].phase_shift_hours == 0.0

    def test_rows_before_first_duty_at_home(self):
        tracker = _tracker()
        snapshots = tracker.track([_make_duty('D1', 10, circadian_phase_shift=4.0)])
        assert tracker.state_at(3, snapshots) == CircadianState(3, 0.0)
        assert tracker.state_at(10, snapshots).phase_shift_hours == pytest.approx(4.0)

    def test_latest_snapshot_wins(self):
        tracker = _tracker()
        snapshots = tracker.track([
            _make_duty('D1', 1, circadian_phase_shift=6.0),
            _make_duty('D2', 4, circadian_phase_shift=-3.0),
        ])
        assert tracker.state_at(5, snapshots).phase_shift_hours == pytest.approx(-1.5)

    def test_conservative_rates(self):
        tracker = _tracker(LayoutConfig.conservative_config())
        snapshots = tracker.track([_make_duty('D1', 1, circadian_phase_shift=6.0)])
        assert tracker.state_at(2, snapshots).phase_shift_hours == pytest.approx(5.3)
