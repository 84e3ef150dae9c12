"""
Tests for parsing the backend analysis payload into layout records.

Run: python -m pytest tests/test_analysis_parser.py -v
"""

from datetime import date

import pytest

from parsers.analysis_parser import AnalysisPayloadParser, interpolate_segment_performances


# ── Helpers ──────────────────────────────────────────────────────────────

def _segment(flight_number, departure_time, arrival_time, **kwargs):
    seg = {
        'flight_number': flight_number,
        'departure': 'DOH',
        'arrival': 'LHR',
        'departure_time': departure_time,
        'arrival_time': arrival_time,
        'block_hours': 6.0,
    }
    seg.update(kwargs)
    return seg


def _raw_duty(duty_id='D1', **kwargs):
    raw = {
        'duty_id': duty_id,
        'date': '2025-03-05',
        'report_time_utc': '2025-03-05T03:00:00Z',
        'release_time_utc': '2025-03-05T10:30:00Z',
        'avg_performance': 80.0,
        'min_performance': 65.0,
        'segments': [_segment('QR1', '2025-03-05T04:00:00Z', '2025-03-05T10:00:00Z', performance=78.0)],
    }
    raw.update(kwargs)
    return raw


# ============================================================================
# Duties and legs
# ============================================================================

class TestDutyParsing:

    def test_local_times_derived_from_home_timezone(self):
        parsed = AnalysisPayloadParser().parse({'home_base_timezone': 'Asia/Qatar', 'duties': [_raw_duty()]})
        duty = parsed.duties[0]
        leg = duty.legs[0]

        assert duty.date == date(2025, 3, 5)
        assert duty.report_time_local == '06:00'
        assert duty.release_time_local == '13:30'
        assert (leg.departure_time_local, leg.arrival_time_local) == ('07:00', '13:00')
        assert (leg.departure_time_utc, leg.arrival_time_utc) == ('04:00Z', '10:00Z')
        assert leg.performance == pytest.approx(78.0)

    def test_home_tz_fields_preferred(self):
        seg = _segment('QR1', '2025-03-05T04:00:00Z', '2025-03-05T10:00:00Z',
                       departure_time_home_tz='07:05', arrival_time_home_tz='13:05')
        raw = _raw_duty(report_time_home_tz='06:05', segments=[seg])
        duty = AnalysisPayloadParser().parse({'home_base_timezone': 'Asia/Qatar', 'duties': [raw]}).duties[0]

        assert duty.report_time_local == '06:05'
        assert duty.legs[0].departure_time_local == '07:05'
        assert duty.legs[0].arrival_time_local == '13:05'

    def test_timezone_override(self):
        parser = AnalysisPayloadParser(home_timezone='Europe/London')
        duty = parser.parse({'home_base_timezone': 'Asia/Qatar', 'duties': [_raw_duty()]}).duties[0]
        assert duty.report_time_local == '03:00'

    def test_unknown_timezone_leaves_local_times_empty(self, caplog):
        parsed = AnalysisPayloadParser().parse({'home_base_timezone': 'Mars/Olympus', 'duties': [_raw_duty()]})
        duty = parsed.duties[0]
        assert duty.report_time_local is None
        assert duty.legs[0].departure_time_local is None
        assert duty.legs[0].departure_time_utc == '04:00Z'
        assert 'Unknown home base timezone' in caplog.text

    def test_aggregates_and_circadian_hints(self):
        raw = _raw_duty(
            sleep_debt=3.5, wocl_hours=1.25, prior_sleep=6.0, landing_performance=60.0,
            circadian_phase_shift=2.0, phase_shift_delta=None, max_fdp_hours=13.0,
        )
        duty = AnalysisPayloadParser().parse({'duties': [raw]}).duties[0]
        assert duty.sleep_debt == pytest.approx(3.5)
        assert duty.wocl_hours == pytest.approx(1.25)
        assert duty.prior_sleep == pytest.approx(6.0)
        assert duty.landing_performance == pytest.approx(60.0)
        assert duty.circadian_phase_shift == pytest.approx(2.0)
        assert duty.phase_shift_delta is None
        assert duty.max_fdp_hours == pytest.approx(13.0)

    def test_flight_duty_defaults(self):
        raw = _raw_duty()
        del raw['min_performance']
        duty = AnalysisPayloadParser().parse({'duties': [raw]}).duties[0]
        assert duty.duty_type == 'flight'
        assert not duty.is_training
        assert duty.training_code is None
        assert duty.min_performance is None

    def test_training_duty(self):
        raw = _raw_duty(duty_type='simulator', training_code='LPC', segments=[])
        duty = AnalysisPayloadParser().parse({'home_base_timezone': 'Asia/Qatar', 'duties': [raw]}).duties[0]
        assert duty.is_training
        assert duty.training_code == 'LPC'
        assert duty.legs == ()
        assert (duty.report_time_local, duty.release_time_local) == ('06:00', '13:30')

    def test_leg_activity_tags(self):
        deadhead = _segment('QR2', '2025-03-05T04:00:00Z', '2025-03-05T10:00:00Z',
                            activity_code='DH', is_deadhead=True)
        duty = AnalysisPayloadParser().parse({'duties': [_raw_duty(segments=[deadhead])]}).duties[0]
        assert duty.legs[0].activity_code == 'DH'
        assert duty.legs[0].is_deadhead

        plain = AnalysisPayloadParser().parse({'duties': [_raw_duty()]}).duties[0].legs[0]
        assert plain.activity_code is None
        assert not plain.is_deadhead

        coded = _segment('QR3', '2025-03-05T04:00:00Z', '2025-03-05T10:00:00Z', activity_code='DH')
        assert AnalysisPayloadParser().parse({'duties': [_raw_duty(segments=[coded])]}).duties[0].legs[0].is_deadhead

        relief = _segment('QR4', '2025-03-05T04:00:00Z', '2025-03-05T10:00:00Z', activity_code='IR')
        leg = AnalysisPayloadParser().parse({'duties': [_raw_duty(segments=[relief])]}).duties[0].legs[0]
        assert (leg.activity_code, leg.is_deadhead) == ('IR', False)

    def test_malformed_duty_skipped(self, caplog):
        bad = _raw_duty('BAD')
        del bad['date']
        parsed = AnalysisPayloadParser().parse({'duties': [bad, _raw_duty('D2')]})

        assert [d.duty_id for d in parsed.duties] == ['D2']
        assert parsed.skipped_duty_ids == ['BAD']
        assert '[BAD] Skipped malformed duty' in caplog.text

    def test_month_from_earliest_duty(self):
        parsed = AnalysisPayloadParser().parse({'duties': [
            _raw_duty('D2', date='2025-03-20'), _raw_duty('D1', date='2025-02-27T00:00:00'),
        ]})
        assert parsed.month == date(2025, 2, 1)

    def test_empty_payload(self):
        parsed = AnalysisPayloadParser().parse({})
        assert parsed.duties == []
        assert parsed.rest_days == []
        assert parsed.month is None


class TestSegmentPerformance:

    def _two_sector_duty(self, avg, landing):
        return {
            'avg_performance': avg,
            'landing_performance': landing,
            'duty_hours': 10.0,
            'report_time_utc': '2025-03-05T00:00:00Z',
            'segments': [
                _segment('QR1', '2025-03-05T01:00:00Z', '2025-03-05T04:00:00Z'),
                _segment('QR2', '2025-03-05T06:00:00Z', '2025-03-05T10:00:00Z'),
            ],
        }

    def test_linear_from_start_estimate_to_landing(self):
        # start = 80 + (80 - 60) * 0.5 = 90; arrivals at 40% and 100% of the duty
        assert interpolate_segment_performances(self._two_sector_duty(80.0, 60.0)) == [
            pytest.approx(78.0), pytest.approx(60.0)
        ]

    def test_single_leg_gets_average(self):
        raw = _raw_duty(segments=[_segment('QR1', '2025-03-05T04:00:00Z', '2025-03-05T10:00:00Z')])
        assert interpolate_segment_performances(raw) == [80.0]

    def test_no_segments(self):
        assert interpolate_segment_performances({'avg_performance': 80.0}) == []

    def test_missing_leg_performance_filled(self):
        duty = AnalysisPayloadParser().parse({'duties': [dict(
            self._two_sector_duty(80.0, 60.0), duty_id='D1', date='2025-03-05'
        )]}).duties[0]
        assert [leg.performance for leg in duty.legs] == [pytest.approx(78.0), pytest.approx(60.0)]

    def test_zero_falls_back_to_average(self):
        # start = 40 + 40 * 0.5 = 60; the final sector interpolates to 0
        duty = AnalysisPayloadParser().parse({'duties': [dict(
            self._two_sector_duty(40.0, 0.0), duty_id='D1', date='2025-03-05'
        )]}).duties[0]
        assert [leg.performance for leg in duty.legs] == [pytest.approx(36.0), pytest.approx(40.0)]


# ============================================================================
# Sleep
# ============================================================================

class TestSleepParsing:

    def test_precomputed_home_tz_pairs(self):
        raw = _raw_duty(sleep_quality={
            'total_sleep_hours': 8.0,
            'effective_sleep_hours': 7.1,
            'sleep_efficiency': 0.89,
            'sleep_strategy': 'anchor',
            'wocl_overlap_hours': 0.5,
            'sleep_start_day_home_tz': 4, 'sleep_start_hour_home_tz': 23.0,
            'sleep_end_day_home_tz': 5, 'sleep_end_hour_home_tz': 7.0,
            'sleep_start_day': 4, 'sleep_start_hour': 20.0,
            'sleep_end_day': 5, 'sleep_end_hour': 4.0,
            'sleep_start_time': '23:00', 'sleep_end_time': '07:00',
            'quality_factors': {'base_efficiency': 0.9, 'wocl_penalty': None},
        })
        estimate = AnalysisPayloadParser().parse({'duties': [raw]}).duties[0].sleep_estimate

        assert estimate.sleep_strategy == 'anchor'
        assert estimate.effective_sleep_hours == pytest.approx(7.1)
        timing = estimate.timing
        assert timing.has_precomputed
        assert (timing.start_day, timing.start_hour, timing.end_day, timing.end_hour) == (4, 23.0, 5, 7.0)
        assert (timing.start_time, timing.end_time) == ('23:00', '07:00')
        assert estimate.quality_factors == {'base_efficiency': 0.9}

    def test_iso_from_first_sleep_block(self):
        raw = _raw_duty(sleep_estimate={
            'total_sleep_hours': 6.0,
            'strategy_type': 'split',
            'sleep_blocks': [
                {'sleep_start_iso': '2025-03-04T22:00:00+03:00', 'sleep_end_iso': '2025-03-05T04:00:00+03:00'},
                {'sleep_start_iso': '2025-03-05T13:00:00+03:00', 'sleep_end_iso': '2025-03-05T15:00:00+03:00'},
            ],
        })
        estimate = AnalysisPayloadParser().parse({'duties': [raw]}).duties[0].sleep_estimate
        assert estimate.sleep_strategy == 'split'
        assert estimate.timing.start_iso == '2025-03-04T22:00:00+03:00'
        assert not estimate.timing.has_precomputed

    def test_no_sleep_data(self):
        assert AnalysisPayloadParser().parse({'duties': [_raw_duty()]}).duties[0].sleep_estimate is None

    def test_rest_days(self):
        payload = {'rest_days_sleep': [{
            'date': '2025-03-10',
            'strategy_type': 'recovery',
            'total_sleep_hours': 9.5,
            'effective_sleep_hours': 8.6,
            'sleep_blocks': [
                {'sleep_start_iso': '2025-03-09T23:00:00+03:00', 'sleep_end_iso': '2025-03-10T08:00:00+03:00',
                 'effective_hours': 8.0, 'quality_factor': 0.92, 'duration_hours': 9.0, 'sleep_type': 'main'},
                {'sleep_start_time': '14:00', 'sleep_end_time': '15:00',
                 'effective_hours': 0.6, 'quality_factor': 0.7, 'sleep_type': 'nap'},
            ],
        }]}
        [rest_day] = AnalysisPayloadParser().parse(payload).rest_days

        assert rest_day.date == date(2025, 3, 10)
        assert rest_day.total_sleep_hours == pytest.approx(9.5)
        main, nap = rest_day.sleep_blocks
        assert main.quality_factor == pytest.approx(0.92)
        assert main.timing.end_iso == '2025-03-10T08:00:00+03:00'
        assert nap.sleep_type == 'nap'
        assert nap.timing.start_time == '14:00'

    def test_malformed_rest_day_skipped(self, caplog):
        parsed = AnalysisPayloadParser().parse({'rest_days_sleep': [{'sleep_blocks': []}]})
        assert parsed.rest_days == []
        assert 'Skipped malformed rest day' in caplog.text


# ============================================================================
# In-flight rest and detail timelines
# ============================================================================

class TestInFlightRestParsing:

    def test_home_tz_pair_and_utc(self):
        raw = _raw_duty(inflight_rest_blocks=[{
            'duration_hours': 3.0,
            'effective_sleep_hours': 2.1,
            'start_utc': '2025-03-05T05:00:00Z',
            'end_utc': '2025-03-05T08:00:00Z',
            'start_day_home_tz': 5, 'start_hour_home_tz': 8.0,
            'end_day_home_tz': 5, 'end_hour_home_tz': 11.0,
            'is_during_wocl': False,
            'crew_set': 'B',
        }])
        [block] = AnalysisPayloadParser().parse({'duties': [raw]}).duties[0].inflight_rest_blocks
        assert (block.start_day, block.start_hour, block.end_day, block.end_hour) == (5, 8.0, 5, 11.0)
        assert block.start_utc == '2025-03-05T05:00:00Z'
        assert block.crew_set == 'B'
        assert block.effective_sleep_hours == pytest.approx(2.1)

    def test_incomplete_pair_ignored(self):
        raw = _raw_duty(inflight_rest_blocks=[{'duration_hours': 3.0, 'start_day': 5, 'start_hour': 8.0}])
        [block] = AnalysisPayloadParser().parse({'duties': [raw]}).duties[0].inflight_rest_blocks
        assert block.start_day is None
        assert block.end_hour is None


class TestDetailTimeline:

    def test_points_without_values_dropped(self):
        timeline = AnalysisPayloadParser.parse_detail_timeline({
            'duty_id': 'D1',
            'timeline': [
                {'timestamp': '2025-03-05T04:00:00Z', 'performance': 81.0},
                {'timestamp': '2025-03-05T04:05:00Z'},
                {'performance': 79.0},
            ],
        })
        assert timeline.duty_id == 'D1'
        assert [(p.timestamp_iso, p.performance) for p in timeline.points] == [('2025-03-05T04:00:00Z', 81.0)]

    def test_missing_duty_id(self):
        with pytest.raises(KeyError):
            AnalysisPayloadParser.parse_detail_timeline({'timeline': []})
