"""
Tests for sleep bar deduplication.

Run: python -m pytest tests/test_deduplication.py -v
"""

from core.deduplication import BarDeduplicator
from models.data_models import SleepBar


def _sleep(row, start, end, quality_factors=None, strategy='anchor'):
    return SleepBar(
        row=row,
        start_hour=start,
        end_hour=end,
        sleep_strategy=strategy,
        quality_factors=quality_factors,
    )


class TestDeduplication:

    def test_identical_bars_collapse(self):
        result = BarDeduplicator().deduplicate([_sleep(5, 0.0, 7.0), _sleep(5, 0.0, 7.0)])
        assert len(result) == 1

    def test_quality_detail_takes_over(self):
        plain = _sleep(5, 0.0, 7.0, strategy='duty')
        detailed = _sleep(5, 0.5, 7.0, quality_factors={'base': 0.9}, strategy='rest')
        result = BarDeduplicator().deduplicate([plain, detailed])
        assert result == [detailed]

    def test_quality_detail_kept_when_first(self):
        detailed = _sleep(5, 0.0, 7.0, quality_factors={'base': 0.9})
        plain = _sleep(5, 1.0, 6.0)
        assert BarDeduplicator().deduplicate([detailed, plain]) == [detailed]

    def test_both_detailed_first_wins(self):
        first = _sleep(5, 0.0, 7.0, quality_factors={'base': 0.9})
        second = _sleep(5, 2.0, 8.0, quality_factors={'base': 0.8})
        assert BarDeduplicator().deduplicate([first, second]) == [first]

    def test_detailed_bar_survives_later_plain_bars(self):
        nap = _sleep(5, 0.0, 2.0)
        night = _sleep(5, 3.0, 7.0)
        detailed = _sleep(5, 1.0, 6.0, quality_factors={'base': 0.9})
        assert BarDeduplicator().deduplicate([nap, night, detailed]) == [detailed]

    def test_overlap_excludes_touching_edges(self):
        assert _sleep(5, 0.0, 7.0).overlaps(_sleep(5, 6.0, 8.0))
        assert not _sleep(5, 0.0, 7.0).overlaps(_sleep(5, 7.0, 8.0))
        assert not _sleep(5, 7.0, 8.0).overlaps(_sleep(5, 0.0, 7.0))

    def test_touching_bars_both_kept(self):
        result = BarDeduplicator().deduplicate([_sleep(5, 0.0, 7.0), _sleep(5, 7.0, 8.0)])
        assert [(b.start_hour, b.end_hour) for b in result] == [(0.0, 7.0), (7.0, 8.0)]

    def test_rows_do_not_compete(self):
        result = BarDeduplicator().deduplicate([_sleep(6, 0.0, 7.0), _sleep(5, 0.0, 7.0)])
        assert [b.row for b in result] == [5, 6]

    def test_output_never_overlaps(self):
        bars = [
            _sleep(5, 22.0, 24.0), _sleep(5, 23.0, 24.0), _sleep(5, 13.0, 14.5),
            _sleep(6, 0.0, 7.0), _sleep(6, 0.0, 6.0, quality_factors={'base': 0.9}),
        ]
        result = BarDeduplicator().deduplicate(bars)
        for row in (5, 6):
            row_bars = [b for b in result if b.row == row]
            for a, b in zip(row_bars, row_bars[1:]):
                assert a.end_hour <= b.start_hour
